"""Administrative gate — a single administrator with two-phase handoff.

Rules:
- Exactly one administrator at any time.
- Handoff is two-phase: the current admin nominates a successor, and the
  successor must accept separately. Until acceptance the current admin
  keeps full authority and may cancel or replace the nomination.
- The gate also records the deployed code hash set by the admin-only
  upgrade operation.

Pure state: validation returns a Rejection (or None). Event logging is
handled by the service layer.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from prompthash.errors import ErrorKind, Rejection

_CODE_HASH = re.compile(r"^[0-9a-f]{64}$")


class AdminGate:
    """Holds the administrator identity and the pending nominee."""

    def __init__(self, admin: str, code_hash: Optional[str] = None) -> None:
        if not admin or not admin.strip():
            raise ValueError("Administrator identity must be non-empty")
        self._admin = admin
        self._pending: Optional[str] = None
        self._code_hash = code_hash

    @property
    def admin(self) -> str:
        return self._admin

    @property
    def pending_admin(self) -> Optional[str]:
        return self._pending

    @property
    def code_hash(self) -> Optional[str]:
        return self._code_hash

    def require_admin(self, caller: str) -> Optional[Rejection]:
        if caller != self._admin:
            return Rejection(
                ErrorKind.UNAUTHORIZED,
                f"{caller} is not the administrator",
            )
        return None

    def nominate(self, caller: str, successor: str) -> Optional[Rejection]:
        """Phase one: the current admin names a successor."""
        rejection = self.require_admin(caller)
        if rejection:
            return rejection
        if not successor or not successor.strip():
            return Rejection(ErrorKind.INVALID_ARGUMENT, "Successor must be non-empty")
        if successor == self._admin:
            return Rejection(
                ErrorKind.INVALID_ARGUMENT,
                f"{successor} is already the administrator",
            )
        self._pending = successor
        return None

    def accept(self, caller: str) -> Optional[Rejection]:
        """Phase two: the nominee takes over."""
        if self._pending is None:
            return Rejection(ErrorKind.NOT_FOUND, "No pending administrator nomination")
        if caller != self._pending:
            return Rejection(
                ErrorKind.UNAUTHORIZED,
                f"{caller} is not the pending administrator",
            )
        self._admin = caller
        self._pending = None
        return None

    def cancel_nomination(self, caller: str) -> Optional[Rejection]:
        rejection = self.require_admin(caller)
        if rejection:
            return rejection
        self._pending = None
        return None

    def record_upgrade(self, caller: str, code_hash: str) -> Optional[Rejection]:
        rejection = self.require_admin(caller)
        if rejection:
            return rejection
        normalized = code_hash.strip().lower()
        if not _CODE_HASH.match(normalized):
            return Rejection(
                ErrorKind.INVALID_ARGUMENT,
                f"Code hash must be 64 hex characters, got {code_hash!r}",
            )
        self._code_hash = normalized
        return None

    # ------------------------------------------------------------------
    # Atomic unit participation and persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[str, Optional[str], Optional[str]]:
        return (self._admin, self._pending, self._code_hash)

    def restore(self, snapshot: tuple[str, Optional[str], Optional[str]]) -> None:
        self._admin, self._pending, self._code_hash = snapshot

    def to_dict(self) -> dict[str, Any]:
        return {
            "admin": self._admin,
            "pending_admin": self._pending,
            "code_hash": self._code_hash,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AdminGate:
        gate = AdminGate(data["admin"], code_hash=data.get("code_hash"))
        gate._pending = data.get("pending_admin")
        return gate
