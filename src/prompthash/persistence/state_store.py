"""State store — JSON snapshot of all durable marketplace state.

One document holds every section (records and counter, fee config, admin
gate, and the in-memory ledgers), so a save is a single atomic file
replace: the document is written to a temporary sibling and moved over
the old one with os.replace(). A crash mid-write leaves the previous
snapshot intact.

Ledgers are only persisted when they are the in-memory reference
implementations. External ledgers keep their own state.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from prompthash.errors import StorageFault
from prompthash.governance.admin import AdminGate
from prompthash.ledgers.identity import InMemoryIdentityLedger
from prompthash.ledgers.payment import InMemoryPaymentLedger
from prompthash.market.fees import FeeSchedule, check_fee_bps
from prompthash.market.record_store import RecordStore
from prompthash.models.settlement import FeeConfig

STATE_VERSION = 1


class StateStore:
    """Persists and reloads marketplace state.

    Usage:
        store = StateStore(Path("data/state.json"))
        store.save(records, fees, admin, identity, payment)
        records = store.load_records()
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(
        self,
        records: RecordStore,
        fees: FeeSchedule,
        admin: AdminGate,
        identity: Any = None,
        payment: Any = None,
    ) -> None:
        """Write every section in one atomic replace. Raises OSError on failure."""
        document = {
            "version": STATE_VERSION,
            "saved_utc": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "records": records.to_dict(),
            "fees": fees.config.to_dict(),
            "admin": admin.to_dict(),
            "identity_ledger": (
                identity.to_dict()
                if isinstance(identity, InMemoryIdentityLedger) else None
            ),
            "payment_ledger": (
                payment.to_dict()
                if isinstance(payment, InMemoryPaymentLedger) else None
            ),
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_name(self._storage_path.name + ".tmp")
        tmp_path.write_text(
            json.dumps(document, indent=2, sort_keys=True), encoding="utf-8",
        )
        os.replace(tmp_path, self._storage_path)

    def load_records(self) -> RecordStore:
        return RecordStore.from_dict(self._section("records"))

    def load_fee_config(self) -> FeeConfig:
        """Fail-closed: an out-of-range fee is a fault, never a default."""
        try:
            config = FeeConfig.from_dict(self._section("fees"))
        except (KeyError, TypeError, ValueError) as e:
            raise StorageFault(f"Unreadable fee configuration: {e}") from e
        rejection = check_fee_bps(config.fee_bps)
        if rejection:
            raise StorageFault(f"Stored fee configuration is invalid: {rejection.message}")
        return config

    def load_admin(self) -> AdminGate:
        try:
            return AdminGate.from_dict(self._section("admin"))
        except (KeyError, TypeError, ValueError) as e:
            raise StorageFault(f"Unreadable admin state: {e}") from e

    def load_identity_ledger(self) -> Optional[InMemoryIdentityLedger]:
        data = self._read().get("identity_ledger")
        return InMemoryIdentityLedger.from_dict(data) if data else None

    def load_payment_ledger(self) -> Optional[InMemoryPaymentLedger]:
        data = self._read().get("payment_ledger")
        return InMemoryPaymentLedger.from_dict(data) if data else None

    def _section(self, name: str) -> dict[str, Any]:
        section = self._read().get(name)
        if not isinstance(section, dict):
            raise StorageFault(f"State file {self._storage_path} has no '{name}' section")
        return section

    def _read(self) -> dict[str, Any]:
        try:
            document = json.loads(self._storage_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StorageFault(f"State file {self._storage_path} is corrupt: {e}") from e
        if document.get("version") != STATE_VERSION:
            raise StorageFault(
                f"Unsupported state version {document.get('version')!r} "
                f"(expected {STATE_VERSION})"
            )
        return document
