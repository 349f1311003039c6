"""Error taxonomy for the marketplace.

Expected precondition failures never raise out of the settlement core:
pure components return a Rejection, the engine and service wrap it in a
ServiceResult. Exceptions are reserved for two places:

- Ledger collaborators raise LedgerError subclasses. Each carries the
  ErrorKind the engine reports after rolling the unit back.
- StorageFault signals a corrupt or unreadable store. It is fatal and is
  never converted into a result.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Classification of every failure a caller can observe."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    ALREADY_SOLD = "already_sold"
    NOT_FOR_SALE = "not_for_sale"
    SELF_PURCHASE = "self_purchase"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_APPROVAL = "insufficient_approval"
    INVALID_ARGUMENT = "invalid_argument"
    PERSISTENCE_FAILURE = "persistence_failure"


@dataclass(frozen=True)
class Rejection:
    """A caller-correctable precondition failure."""
    kind: ErrorKind
    message: str


class LedgerError(Exception):
    """Base class for failures raised by a ledger collaborator."""

    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_rejection(self) -> Rejection:
        return Rejection(kind=self.kind, message=self.message)


class TokenNotFoundError(LedgerError):
    """Token was never minted or has been burned."""
    kind = ErrorKind.NOT_FOUND


class NotAuthorizedError(LedgerError):
    """Caller is not the holder, an approved address, or the minter."""
    kind = ErrorKind.UNAUTHORIZED


class InsufficientFundsError(LedgerError):
    kind = ErrorKind.INSUFFICIENT_FUNDS


class InsufficientApprovalError(LedgerError):
    kind = ErrorKind.INSUFFICIENT_APPROVAL


class StorageFault(Exception):
    """Raised when persisted marketplace state is unreadable or inconsistent."""


class InvalidConfigError(ValueError):
    """Raised when bootstrap configuration fails MarketConfig.validate()."""
