"""Tests for PromptHashService — proves the facade orchestrates correctly."""

from pathlib import Path

import pytest

from prompthash.config import MarketConfig
from prompthash.errors import ErrorKind, InsufficientFundsError
from prompthash.ledgers.payment import PaymentLedger
from prompthash.persistence.event_log import EventKind, EventLog, EventRecord
from prompthash.persistence.state_store import StateStore
from prompthash.service import PromptHashService


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def config() -> MarketConfig:
    return MarketConfig.from_params(
        {"marketplace": {"admin_id": "admin", "fee_recipient": "treasury", "fee_bps": 500}},
    )


@pytest.fixture
def service(config: MarketConfig) -> PromptHashService:
    return PromptHashService(config, event_log=EventLog())


class _BrokenEventLog(EventLog):
    """Event log whose appends always fail."""

    def append(self, event: EventRecord) -> None:
        raise OSError("disk full")


class _BrokenStateStore(StateStore):
    """State store whose saves always fail."""

    def save(self, *args, **kwargs) -> None:
        raise OSError("read-only filesystem")


class _ExternalPaymentLedger:
    """Payment ledger owned elsewhere: transfers and rollback only."""

    def __init__(self, balances: dict[str, int]) -> None:
        self._balances = dict(balances)

    def transfer_from(self, spender: str, from_: str, to: str, amount: int) -> None:
        if self._balances.get(from_, 0) < amount:
            raise InsufficientFundsError(f"{from_} cannot cover {amount}")
        self._balances[from_] -= amount
        self._balances[to] = self._balances.get(to, 0) + amount

    def balance(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def snapshot(self) -> dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: dict[str, int]) -> None:
        self._balances = dict(snapshot)


class _NonTransactionalLedger:
    def transfer_from(self, spender: str, from_: str, to: str, amount: int) -> None:
        pass

    def balance(self, identity: str) -> int:
        return 0


def _fund(service: PromptHashService, buyer: str = "bob", amount: int = 50_000) -> None:
    assert service.fund_account("admin", buyer, amount).success
    assert service.approve_payment(buyer, amount).success


def _listed(service: PromptHashService, price: int = 10_000) -> int:
    result = service.create_prompt("alice", "Sunset", "art", "https://img", "desc", price)
    token_id = result.data["token_id"]
    assert service.list_prompt_for_sale("alice", token_id, price).success
    return token_id


class TestConstruction:
    def test_invalid_config_refused(self) -> None:
        config = MarketConfig(admin_id="", fee_recipient="treasury")
        with pytest.raises(ValueError, match="admin_id"):
            PromptHashService(config)

    def test_loads_shipped_config(self) -> None:
        config = MarketConfig.from_config_dir(CONFIG_DIR, env_file=CONFIG_DIR / "missing.env")
        service = PromptHashService(config)
        assert service.fee_config.fee_bps == config.fee_bps
        assert service.next_token_id() == 0


class TestPromptLifecycle:
    def test_full_sale(self, service: PromptHashService) -> None:
        _fund(service)
        token_id = _listed(service)
        result = service.buy_prompt("bob", token_id)
        assert result.success
        assert result.data["fee"] == 500
        assert service.balance("alice") == 9_500
        assert service.balance("treasury") == 500
        assert service.get_prompt(token_id).owner == "bob"

    def test_each_operation_emits_one_event(self, service: PromptHashService) -> None:
        _fund(service)
        token_id = _listed(service)
        service.buy_prompt("bob", token_id)
        kinds = [e.event_kind for e in service.event_log.events()]
        assert kinds == [
            EventKind.PROMPT_CREATED,
            EventKind.PROMPT_LISTED,
            EventKind.PROMPT_SOLD,
        ]

    def test_sold_event_carries_split(self, service: PromptHashService) -> None:
        _fund(service)
        token_id = _listed(service)
        service.buy_prompt("bob", token_id)
        sold = service.event_log.events(EventKind.PROMPT_SOLD)[0]
        assert sold.actor_id == "bob"
        assert sold.payload["seller"] == "alice"
        assert sold.payload["fee"] + sold.payload["seller_amount"] == sold.payload["price"]

    def test_event_ids_are_sequential(self, service: PromptHashService) -> None:
        _listed(service)
        ids = [e.event_id for e in service.event_log.events()]
        assert ids == ["EVT-00000001", "EVT-00000002"]

    def test_rejected_operation_emits_no_event(self, service: PromptHashService) -> None:
        result = service.buy_prompt("bob", 7)
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert service.event_log.count == 0

    def test_ledger_failure_reported_with_kind(self, service: PromptHashService) -> None:
        token_id = _listed(service)
        result = service.buy_prompt("bob", token_id)
        assert result.error_kind == ErrorKind.INSUFFICIENT_APPROVAL
        assert service.event_log.count == 2

    def test_events_for_token(self, service: PromptHashService) -> None:
        first = _listed(service)
        _listed(service)
        history = service.event_log.events_for_token(first)
        assert [e.event_kind for e in history] == [
            EventKind.PROMPT_CREATED, EventKind.PROMPT_LISTED,
        ]


class TestBurn:
    def test_burn_keeps_inert_record(self, service: PromptHashService) -> None:
        _fund(service)
        token_id = _listed(service)
        assert service.burn_token("alice", token_id).success
        assert service.get_prompt(token_id) is not None
        assert service.buy_prompt("bob", token_id).error_kind == ErrorKind.NOT_FOUND
        assert service.reconcile_owner(token_id).data["burned"] is True
        assert service.event_log.last_event.event_kind == EventKind.TOKEN_BURNED

    def test_only_holder_burns(self, service: PromptHashService) -> None:
        token_id = _listed(service)
        result = service.burn_token("mallory", token_id)
        assert result.error_kind == ErrorKind.UNAUTHORIZED


class TestAdministration:
    def test_fee_update_event(self, service: PromptHashService) -> None:
        assert service.set_fee_percentage("admin", 250).success
        event = service.event_log.last_event
        assert event.event_kind == EventKind.FEE_UPDATED
        assert event.payload == {"fee_bps": 250}

    def test_admin_handoff(self, service: PromptHashService) -> None:
        assert service.nominate_admin("admin", "carol").success
        assert service.set_fee_percentage("carol", 1).error_kind == ErrorKind.UNAUTHORIZED
        assert service.accept_admin("carol").success
        assert service.set_fee_percentage("carol", 1).success
        assert service.set_fee_recipient("admin", "x").error_kind == ErrorKind.UNAUTHORIZED
        accepted = service.event_log.events(EventKind.ADMIN_ACCEPTED)[0]
        assert accepted.payload == {"previous_admin": "admin", "admin": "carol"}

    def test_cancel_nomination(self, service: PromptHashService) -> None:
        service.nominate_admin("admin", "carol")
        assert service.cancel_admin_nomination("admin").success
        assert service.accept_admin("carol").error_kind == ErrorKind.NOT_FOUND

    def test_upgrade(self, service: PromptHashService) -> None:
        result = service.upgrade("admin", "AB" * 32)
        assert result.success
        assert service.status()["admin"]["code_hash"] == "ab" * 32

    def test_fund_requires_issuer(self, service: PromptHashService) -> None:
        result = service.fund_account("bob", "bob", 10)
        assert result.error_kind == ErrorKind.UNAUTHORIZED
        assert service.balance("bob") == 0


class TestFailClosedAudit:
    def test_event_failure_rolls_back_create(self, config: MarketConfig) -> None:
        service = PromptHashService(config, event_log=_BrokenEventLog())
        result = service.create_prompt("alice", "T", "c", "", "", 1)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert service.next_token_id() == 0
        assert service.identity_ledger.next_token_id == 0

    def test_event_failure_rolls_back_sale(self, config: MarketConfig) -> None:
        log = EventLog()
        service = PromptHashService(config, event_log=log)
        _fund(service)
        token_id = _listed(service)
        service._event_log = _BrokenEventLog()
        result = service.buy_prompt("bob", token_id)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert service.balance("bob") == 50_000
        assert service.balance("alice") == 0
        assert service.get_prompt(token_id).for_sale is True


class TestPersistence:
    def test_state_survives_restart(self, config: MarketConfig, tmp_path: Path) -> None:
        log_path = tmp_path / "events.jsonl"
        state_path = tmp_path / "state.json"
        service = PromptHashService(
            config, event_log=EventLog(log_path), state_store=StateStore(state_path),
        )
        _fund(service)
        token_id = _listed(service)
        service.buy_prompt("bob", token_id)
        service.set_fee_percentage("admin", 100)

        restarted = PromptHashService(
            config, event_log=EventLog(log_path), state_store=StateStore(state_path),
        )
        assert restarted.get_prompt(token_id).owner == "bob"
        assert restarted.get_prompt(token_id).sold is True
        assert restarted.balance("alice") == 9_500
        assert restarted.fee_config.fee_bps == 100
        assert restarted.next_token_id() == 1
        assert restarted.event_log.count == 4

        result = restarted.create_prompt("carol", "T", "c", "", "", 1)
        assert result.data["token_id"] == 1
        assert restarted.event_log.last_event.event_id == "EVT-00000005"

    def test_snapshot_failure_degrades_without_rollback(
        self, config: MarketConfig, tmp_path: Path,
    ) -> None:
        service = PromptHashService(
            config,
            event_log=EventLog(),
            state_store=_BrokenStateStore(tmp_path / "state.json"),
        )
        result = service.create_prompt("alice", "T", "c", "", "", 1)
        assert result.success
        assert "Persistence degraded" in result.data["warning"]
        assert service.next_token_id() == 1
        assert service.status()["persistence_degraded"] is True

    def test_snapshot_failure_rolls_back_ledger_op(
        self, config: MarketConfig, tmp_path: Path,
    ) -> None:
        service = PromptHashService(
            config, state_store=_BrokenStateStore(tmp_path / "state.json"),
        )
        result = service.fund_account("admin", "bob", 10)
        assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert service.balance("bob") == 0


class TestStatus:
    def test_status_counts_by_state(self, service: PromptHashService) -> None:
        _fund(service)
        sold = _listed(service)
        _listed(service)
        service.create_prompt("alice", "T", "c", "", "", 1)
        service.buy_prompt("bob", sold)
        status = service.status()
        assert status["prompts"]["total"] == 3
        assert status["prompts"]["by_state"] == {"unlisted": 1, "listed": 1, "sold": 1}
        assert status["fees"] == {"fee_bps": 500, "fee_recipient": "treasury"}
        assert status["persistence_degraded"] is False


class TestExternalLedgers:
    def test_external_ledger_satisfies_protocol(self) -> None:
        assert isinstance(_ExternalPaymentLedger({}), PaymentLedger)
        assert not isinstance(_NonTransactionalLedger(), PaymentLedger)

    def test_sale_settles_through_external_ledger(self, config: MarketConfig) -> None:
        ledger = _ExternalPaymentLedger({"bob": 10_000})
        service = PromptHashService(config, event_log=EventLog(), payment_ledger=ledger)
        token_id = _listed(service)
        assert service.buy_prompt("bob", token_id).success
        assert ledger.balance("alice") == 9_500
        assert ledger.balance("treasury") == 500

    def test_failed_purchase_rolls_back_external_ledger(self, config: MarketConfig) -> None:
        ledger = _ExternalPaymentLedger({"bob": 10_000})
        service = PromptHashService(config, payment_ledger=ledger)
        token_id = _listed(service)
        service.identity_ledger.approve("alice", "carol", token_id)
        assert service.buy_prompt("bob", token_id).error_kind == ErrorKind.UNAUTHORIZED
        assert ledger.balance("bob") == 10_000
        assert ledger.balance("alice") == 0

    def test_reference_asset_operations_unavailable(self, config: MarketConfig) -> None:
        service = PromptHashService(config, payment_ledger=_ExternalPaymentLedger({}))
        assert service.fund_account("admin", "bob", 1).error_kind == ErrorKind.INVALID_ARGUMENT
        assert service.approve_payment("bob", 1).error_kind == ErrorKind.INVALID_ARGUMENT

    def test_external_ledger_state_not_snapshotted(
        self, config: MarketConfig, tmp_path: Path,
    ) -> None:
        store = StateStore(tmp_path / "state.json")
        service = PromptHashService(
            config, state_store=store, payment_ledger=_ExternalPaymentLedger({}),
        )
        service.create_prompt("alice", "T", "c", "", "", 1)
        assert store.load_payment_ledger() is None
        assert store.load_identity_ledger().owner_of(0) == "alice"

    def test_non_transactional_ledger_refused(self, config: MarketConfig) -> None:
        with pytest.raises(TypeError, match="snapshot"):
            PromptHashService(config, payment_ledger=_NonTransactionalLedger())
