"""Identity ledger — non-fungible token ownership.

The settlement engine depends only on the IdentityLedger Protocol. The
in-memory implementation below is the reusable token-standard module:
sequential minting, ownership, per-token and operator approvals, and burn.

Token IDs start at 0 and come from a sequence that never decreases. A
burned ID is never minted again, so an old marketplace record can never be
attached to a new, unrelated token.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional, Protocol, Set, runtime_checkable

from prompthash.errors import NotAuthorizedError, TokenNotFoundError


@runtime_checkable
class IdentityLedger(Protocol):
    """Contract the settlement engine consumes from the identity ledger.

    Ledgers join every atomic unit, so an implementation must be
    transactional: snapshot() captures its state and restore() puts it
    back exactly. A ledger backed by an external system implements these
    as its own savepoint and rollback.
    """

    @property
    def next_token_id(self) -> int:
        """ID the next mint will assign."""
        ...

    def mint(self, minter: str, to: str) -> int:
        """Mint the next sequential token to `to`. Returns its ID."""
        ...

    def owner_of(self, token_id: int) -> str:
        """Current holder. Raises TokenNotFoundError if never minted or burned."""
        ...

    def transfer_from(self, caller: str, from_: str, to: str, token_id: int) -> None:
        """Move a token. Caller must be the holder or approved by the holder."""
        ...

    def approve(self, caller: str, approved: str, token_id: int) -> None:
        """Let `approved` transfer this one token on the holder's behalf."""
        ...

    def burn(self, caller: str, token_id: int) -> None:
        """Destroy a token. Its ID is never reused."""
        ...

    def snapshot(self) -> Any:
        """Capture state for rollback of the enclosing unit."""
        ...

    def restore(self, snapshot: Any) -> None:
        """Undo everything since `snapshot` was taken."""
        ...


class InMemoryIdentityLedger:
    """Sequential-mint non-fungible token ledger held in memory.

    Usage:
        ledger = InMemoryIdentityLedger(minter="prompthash-market")
        token_id = ledger.mint("prompthash-market", "alice")
        ledger.approve("alice", "prompthash-market", token_id)
        ledger.transfer_from("prompthash-market", "alice", "bob", token_id)
    """

    def __init__(
        self,
        minter: str,
        name: str = "PromptHash",
        symbol: str = "PHASH",
        base_uri: str = "https://api.example.com/v1/",
    ) -> None:
        self._minter = minter
        self.name = name
        self.symbol = symbol
        self.base_uri = base_uri
        self._next_id = 0
        self._owners: Dict[int, str] = {}
        self._approvals: Dict[int, str] = {}
        self._operators: Dict[str, Set[str]] = {}

    @property
    def minter(self) -> str:
        return self._minter

    @property
    def next_token_id(self) -> int:
        return self._next_id

    def mint(self, minter: str, to: str) -> int:
        if minter != self._minter:
            raise NotAuthorizedError(f"{minter} is not the minter of {self.symbol}")
        token_id = self._next_id
        self._next_id += 1
        self._owners[token_id] = to
        return token_id

    def owner_of(self, token_id: int) -> str:
        owner = self._owners.get(token_id)
        if owner is None:
            raise TokenNotFoundError(f"Token not found: {token_id}")
        return owner

    def balance_of(self, owner: str) -> int:
        return sum(1 for holder in self._owners.values() if holder == owner)

    def token_uri(self, token_id: int) -> str:
        self.owner_of(token_id)
        return f"{self.base_uri}{token_id}"

    def approve(self, caller: str, approved: str, token_id: int) -> None:
        owner = self.owner_of(token_id)
        if caller != owner and not self.is_approved_for_all(owner, caller):
            raise NotAuthorizedError(
                f"{caller} cannot approve token {token_id} held by {owner}"
            )
        self._approvals[token_id] = approved

    def get_approved(self, token_id: int) -> Optional[str]:
        self.owner_of(token_id)
        return self._approvals.get(token_id)

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None:
        operators = self._operators.setdefault(owner, set())
        if approved:
            operators.add(operator)
        else:
            operators.discard(operator)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return operator in self._operators.get(owner, set())

    def transfer_from(self, caller: str, from_: str, to: str, token_id: int) -> None:
        owner = self.owner_of(token_id)
        if owner != from_:
            raise NotAuthorizedError(
                f"{from_} is not the current holder of token {token_id}"
            )
        if not self._can_move(caller, owner, token_id):
            raise NotAuthorizedError(
                f"{caller} is not approved to transfer token {token_id}"
            )
        self._owners[token_id] = to
        self._approvals.pop(token_id, None)

    def burn(self, caller: str, token_id: int) -> None:
        owner = self.owner_of(token_id)
        if not self._can_move(caller, owner, token_id):
            raise NotAuthorizedError(f"{caller} cannot burn token {token_id}")
        del self._owners[token_id]
        self._approvals.pop(token_id, None)

    def _can_move(self, caller: str, owner: str, token_id: int) -> bool:
        return (
            caller == owner
            or self._approvals.get(token_id) == caller
            or self.is_approved_for_all(owner, caller)
        )

    # ------------------------------------------------------------------
    # Atomic unit participation and persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "next_id": self._next_id,
            "owners": dict(self._owners),
            "approvals": dict(self._approvals),
            "operators": copy.deepcopy(self._operators),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._next_id = snapshot["next_id"]
        self._owners = dict(snapshot["owners"])
        self._approvals = dict(snapshot["approvals"])
        self._operators = copy.deepcopy(snapshot["operators"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "minter": self._minter,
            "name": self.name,
            "symbol": self.symbol,
            "base_uri": self.base_uri,
            "next_id": self._next_id,
            "owners": {str(k): v for k, v in self._owners.items()},
            "approvals": {str(k): v for k, v in self._approvals.items()},
            "operators": {k: sorted(v) for k, v in self._operators.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryIdentityLedger:
        ledger = cls(
            minter=data["minter"],
            name=data.get("name", "PromptHash"),
            symbol=data.get("symbol", "PHASH"),
            base_uri=data.get("base_uri", "https://api.example.com/v1/"),
        )
        ledger._next_id = int(data.get("next_id", 0))
        ledger._owners = {int(k): v for k, v in data.get("owners", {}).items()}
        ledger._approvals = {int(k): v for k, v in data.get("approvals", {}).items()}
        ledger._operators = {
            k: set(v) for k, v in data.get("operators", {}).items()
        }
        return ledger
