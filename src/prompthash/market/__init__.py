"""Marketplace core — record store, fee schedule, and settlement engine.

Creators mint prompt tokens, owners list them at a price, and buyers
purchase them in one atomic settlement that pays the seller, routes the
protocol fee, and transfers the token.
"""

from prompthash.market.atomic import AtomicExecutor
from prompthash.market.fees import FeeSchedule, compute_fee_split
from prompthash.market.listing_state_machine import PromptStateMachine
from prompthash.market.record_store import RecordStore
from prompthash.market.settlement import SettlementEngine

__all__ = [
    "AtomicExecutor",
    "FeeSchedule",
    "PromptStateMachine",
    "RecordStore",
    "SettlementEngine",
    "compute_fee_split",
]
