"""Tests for the record store — sequential IDs, full overwrites, fail-closed loads."""

from dataclasses import replace

import pytest

from prompthash.errors import StorageFault
from prompthash.market.record_store import RecordStore
from prompthash.models.prompt import PromptDraft, PromptRecord, PromptState


def _make_draft(owner: str = "alice", price: int = 10_000) -> PromptDraft:
    return PromptDraft(
        owner=owner,
        price=price,
        title="Sunset",
        category="art",
        image_url="https://img.example/sunset.png",
        description="Golden hour over the sea",
    )


class TestAllocation:
    def test_ids_start_at_zero_and_increase(self) -> None:
        store = RecordStore()
        ids = [store.allocate_and_save(_make_draft()) for _ in range(3)]
        assert ids == [0, 1, 2]
        assert store.next_id == 3
        assert store.count == 3

    def test_new_record_is_unlisted(self) -> None:
        store = RecordStore()
        token_id = store.allocate_and_save(_make_draft(price=42))
        record = store.get(token_id)
        assert record is not None
        assert record.state == PromptState.UNLISTED
        assert record.price == 42
        assert record.owner == "alice"
        assert record.title == "Sunset"

    def test_get_unknown_returns_none(self) -> None:
        assert RecordStore().get(7) is None


class TestSave:
    def test_save_overwrites_full_record(self) -> None:
        store = RecordStore()
        token_id = store.allocate_and_save(_make_draft())
        record = store.get(token_id)
        store.save(replace(record, for_sale=True, price=500))
        updated = store.get(token_id)
        assert updated.for_sale is True
        assert updated.price == 500
        assert store.count == 1

    def test_save_unallocated_id_is_fault(self) -> None:
        store = RecordStore()
        with pytest.raises(StorageFault, match="never allocated"):
            store.save(PromptRecord(token_id=0, owner="alice", price=1))

    def test_list_all_in_id_order(self) -> None:
        store = RecordStore()
        for owner in ("alice", "bob", "carol"):
            store.allocate_and_save(_make_draft(owner=owner))
        assert [r.owner for r in store.list_all()] == ["alice", "bob", "carol"]


class TestCounterIntegrity:
    def test_corrupt_counter_is_fault(self) -> None:
        store = RecordStore()
        store._counter = -1
        with pytest.raises(StorageFault, match="unreadable"):
            store.allocate_and_save(_make_draft())

    def test_snapshot_restore_rolls_back_counter_and_records(self) -> None:
        store = RecordStore()
        store.allocate_and_save(_make_draft())
        snap = store.snapshot()
        store.allocate_and_save(_make_draft(owner="bob"))
        store.restore(snap)
        assert store.next_id == 1
        assert store.get(1) is None


class TestRoundTrip:
    def test_dict_round_trip_keeps_counter(self) -> None:
        store = RecordStore()
        store.allocate_and_save(_make_draft())
        store.allocate_and_save(_make_draft(owner="bob"))
        loaded = RecordStore.from_dict(store.to_dict())
        assert loaded.next_id == 2
        assert loaded.get(1).owner == "bob"

    def test_missing_counter_is_fault(self) -> None:
        with pytest.raises(StorageFault):
            RecordStore.from_dict({"records": []})

    def test_record_beyond_counter_is_fault(self) -> None:
        data = {
            "counter": 1,
            "records": [PromptRecord(token_id=3, owner="alice", price=1).to_dict()],
        }
        with pytest.raises(StorageFault, match="beyond counter"):
            RecordStore.from_dict(data)

    def test_sold_and_for_sale_record_is_fault(self) -> None:
        data = {
            "counter": 1,
            "records": [{
                "token_id": 0, "owner": "alice", "price": 1,
                "for_sale": True, "sold": True,
            }],
        }
        with pytest.raises(StorageFault, match="Unreadable"):
            RecordStore.from_dict(data)


class TestPromptRecord:
    def test_sold_cannot_be_for_sale(self) -> None:
        with pytest.raises(ValueError, match="cannot be for sale"):
            PromptRecord(token_id=0, owner="alice", price=1, for_sale=True, sold=True)

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValueError):
            PromptRecord(token_id=0, owner="alice", price=-1)

    def test_state_derivation(self) -> None:
        base = PromptRecord(token_id=0, owner="alice", price=1)
        assert base.state == PromptState.UNLISTED
        assert replace(base, for_sale=True).state == PromptState.LISTED
        assert replace(base, sold=True).state == PromptState.SOLD
