"""Core data models for the PromptHash marketplace."""

from prompthash.models.prompt import PromptDraft, PromptRecord, PromptState
from prompthash.models.result import ServiceResult
from prompthash.models.settlement import (
    BASIS_POINTS,
    DEFAULT_FEE_BPS,
    FeeConfig,
    FeeSplit,
    SaleReceipt,
)

__all__ = [
    "BASIS_POINTS",
    "DEFAULT_FEE_BPS",
    "FeeConfig",
    "FeeSplit",
    "PromptDraft",
    "PromptRecord",
    "PromptState",
    "SaleReceipt",
    "ServiceResult",
]
