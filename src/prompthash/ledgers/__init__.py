"""Ledger collaborators — identity (non-fungible) and payment (fungible).

The settlement engine depends on the Protocols only. The in-memory
implementations are the reference ledgers used by the service and CLI.
"""

from prompthash.ledgers.identity import IdentityLedger, InMemoryIdentityLedger
from prompthash.ledgers.payment import InMemoryPaymentLedger, PaymentLedger

__all__ = [
    "IdentityLedger",
    "InMemoryIdentityLedger",
    "InMemoryPaymentLedger",
    "PaymentLedger",
]
