"""Payment ledger — fungible balances and spender allowances.

The settlement engine consumes only transfer_from() and balance() through
the PaymentLedger Protocol. The in-memory ledger is the reference asset
used by the CLI and tests: an issuer mints supply, holders approve
spenders, and spenders pull funds with transfer_from().

A failed transfer never moves funds or consumes allowance.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Tuple, runtime_checkable

from prompthash.errors import (
    InsufficientApprovalError,
    InsufficientFundsError,
    LedgerError,
    NotAuthorizedError,
)


@runtime_checkable
class PaymentLedger(Protocol):
    """Contract the settlement engine consumes from the payment ledger.

    Like the identity ledger, an implementation must be transactional:
    restore(snapshot()) undoes every transfer made in between.
    """

    def transfer_from(self, spender: str, from_: str, to: str, amount: int) -> None:
        """Move `amount` from `from_` to `to` using spender's allowance."""
        ...

    def balance(self, identity: str) -> int:
        """Current balance of `identity` in the smallest unit."""
        ...

    def snapshot(self) -> Any:
        """Capture state for rollback of the enclosing unit."""
        ...

    def restore(self, snapshot: Any) -> None:
        """Undo every transfer since `snapshot` was taken."""
        ...


class InMemoryPaymentLedger:
    """Issuer-minted fungible asset held in memory.

    Usage:
        ledger = InMemoryPaymentLedger(issuer="admin")
        ledger.mint("admin", "bob", 50_000)
        ledger.approve("bob", "prompthash-market", 10_000)
        ledger.transfer_from("prompthash-market", "bob", "alice", 9_500)
    """

    def __init__(
        self,
        issuer: str,
        name: str = "My Token",
        symbol: str = "TKN",
        decimals: int = 18,
    ) -> None:
        self._issuer = issuer
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}

    @property
    def issuer(self) -> str:
        return self._issuer

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def balance(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def mint(self, caller: str, to: str, amount: int) -> None:
        if caller != self._issuer:
            raise NotAuthorizedError(f"{caller} is not the issuer of {self.symbol}")
        _check_amount(amount)
        self._balances[to] = self.balance(to) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set (not add to) the allowance `spender` may pull from `owner`."""
        _check_amount(amount)
        self._allowances[(owner, spender)] = amount

    def transfer(self, from_: str, to: str, amount: int) -> None:
        _check_amount(amount)
        self._move(from_, to, amount)

    def transfer_from(self, spender: str, from_: str, to: str, amount: int) -> None:
        _check_amount(amount)
        allowed = self.allowance(from_, spender)
        if allowed < amount:
            raise InsufficientApprovalError(
                f"{spender} may spend {allowed} from {from_}, needs {amount}"
            )
        self._move(from_, to, amount)
        self._allowances[(from_, spender)] = allowed - amount

    def _move(self, from_: str, to: str, amount: int) -> None:
        available = self.balance(from_)
        if available < amount:
            raise InsufficientFundsError(
                f"{from_} holds {available}, needs {amount}"
            )
        self._balances[from_] = available - amount
        self._balances[to] = self.balance(to) + amount

    # ------------------------------------------------------------------
    # Atomic unit participation and persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "allowances": dict(self._allowances),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._balances = dict(snapshot["balances"])
        self._allowances = dict(snapshot["allowances"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "issuer": self._issuer,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "balances": dict(self._balances),
            "allowances": [
                {"owner": owner, "spender": spender, "amount": amount}
                for (owner, spender), amount in self._allowances.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryPaymentLedger:
        ledger = cls(
            issuer=data["issuer"],
            name=data.get("name", "My Token"),
            symbol=data.get("symbol", "TKN"),
            decimals=int(data.get("decimals", 18)),
        )
        ledger._balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        ledger._allowances = {
            (a["owner"], a["spender"]): int(a["amount"])
            for a in data.get("allowances", [])
        }
        return ledger


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise LedgerError(f"Amount must be a non-negative integer, got {amount!r}")
