"""Record store — durable token ID → prompt record mapping.

Identity allocation uses one monotonic counter rather than a free list.
Reusing an ID after a burn would let an old record resurface under a new,
unrelated token, so the counter only ever moves forward. Within
allocate_and_save() the counter advances before the record is written: a
write that fails leaves a gap, never a reused ID. Rolling back a whole
operation is the atomic executor's job, and it restores the counter and
the records together.

The store persists and nothing more. Business rules are checked by the
settlement engine before save() is called.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from prompthash.errors import StorageFault
from prompthash.models.prompt import PromptDraft, PromptRecord


class RecordStore:
    """In-memory record store with snapshot/restore and dict round-trip.

    Usage:
        store = RecordStore()
        token_id = store.allocate_and_save(draft)
        record = store.get(token_id)
        store.save(dataclasses.replace(record, for_sale=True))
    """

    def __init__(self) -> None:
        self._records: Dict[int, PromptRecord] = {}
        self._counter: int = 0

    @property
    def next_id(self) -> int:
        """ID the next allocation will assign."""
        return self._read_counter()

    @property
    def count(self) -> int:
        return len(self._records)

    def allocate_and_save(self, draft: PromptDraft) -> int:
        """Assign the next sequential ID, store the record, return the ID."""
        token_id = self._read_counter()
        self._counter = token_id + 1
        self._records[token_id] = PromptRecord.from_draft(token_id, draft)
        return token_id

    def get(self, token_id: int) -> Optional[PromptRecord]:
        return self._records.get(token_id)

    def save(self, record: PromptRecord) -> None:
        """Overwrite the full record keyed by its token ID."""
        if record.token_id >= self._read_counter():
            raise StorageFault(
                f"Cannot save record {record.token_id}: ID was never allocated"
            )
        self._records[record.token_id] = record

    def list_all(self) -> list[PromptRecord]:
        """All records in ID order, skipping IDs with nothing stored."""
        return [
            self._records[token_id]
            for token_id in range(self._read_counter())
            if token_id in self._records
        ]

    def _read_counter(self) -> int:
        counter = self._counter
        if not isinstance(counter, int) or isinstance(counter, bool) or counter < 0:
            raise StorageFault(f"Record counter is unreadable: {counter!r}")
        return counter

    # ------------------------------------------------------------------
    # Atomic unit participation and persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[int, Dict[int, PromptRecord]]:
        # Records are frozen, so a shallow copy is a full snapshot.
        return (self._counter, dict(self._records))

    def restore(self, snapshot: tuple[int, Dict[int, PromptRecord]]) -> None:
        self._counter, records = snapshot
        self._records = dict(records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "counter": self._read_counter(),
            "records": [r.to_dict() for r in self.list_all()],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RecordStore:
        """Rebuild a store from persisted state.

        Fail-closed: a missing or negative counter, or a record whose ID is
        at or beyond the counter, raises StorageFault.
        """
        store = RecordStore()
        counter = data.get("counter")
        if not isinstance(counter, int) or isinstance(counter, bool) or counter < 0:
            raise StorageFault(f"Record counter is unreadable: {counter!r}")
        store._counter = counter
        for item in data.get("records", []):
            try:
                record = PromptRecord.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                raise StorageFault(f"Unreadable prompt record: {e}") from e
            if record.token_id >= counter:
                raise StorageFault(
                    f"Record {record.token_id} is beyond counter {counter}"
                )
            if record.token_id in store._records:
                raise StorageFault(f"Duplicate record ID: {record.token_id}")
            store._records[record.token_id] = record
        return store
