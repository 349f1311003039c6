"""PromptHash service — unified facade for the marketplace.

This is the primary interface for programmatic access. It orchestrates:
- Prompt lifecycle (create, list, buy) through the settlement engine
- Fee configuration and contract administration (admin-gated)
- Ledger conveniences for the reference payment asset (fund, approve)
- Persistence (event log, state store)

All operations produce typed results. Every state change runs inside one
atomic unit together with its event append: if the event cannot be
recorded, the state change is rolled back (fail-closed audit). State
snapshots are written after the unit commits; a failed snapshot write
degrades persistence but never undoes a committed, audited operation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from prompthash import __version__
from prompthash.config import MarketConfig
from prompthash.errors import ErrorKind, InvalidConfigError, LedgerError, Rejection
from prompthash.governance.admin import AdminGate
from prompthash.ledgers.identity import IdentityLedger, InMemoryIdentityLedger
from prompthash.ledgers.payment import InMemoryPaymentLedger, PaymentLedger
from prompthash.market.atomic import AtomicExecutor
from prompthash.market.fees import FeeSchedule
from prompthash.market.record_store import RecordStore
from prompthash.market.settlement import SettlementEngine
from prompthash.models.prompt import PromptRecord, PromptState
from prompthash.models.result import ServiceResult
from prompthash.models.settlement import FeeConfig
from prompthash.persistence.event_log import EventKind, EventLog, EventRecord
from prompthash.persistence.state_store import StateStore

logger = logging.getLogger(__name__)


class _AuditFailure(Exception):
    """Event could not be recorded; the enclosing unit must roll back."""


class PromptHashService:
    """Marketplace facade.

    Usage:
        config = MarketConfig.from_config_dir(config_dir)
        service = PromptHashService(config)

        result = service.create_prompt("alice", "Title", "art",
                                       "https://img", "A prompt", 10_000)
        token_id = result.data["token_id"]
        service.list_prompt_for_sale("alice", token_id, 10_000)

        service.fund_account(config.admin_id, "bob", 10_000)
        service.approve_payment("bob", 10_000)
        result = service.buy_prompt("bob", token_id)

    Persistence (optional):
        service = PromptHashService(config, event_log=log, state_store=store)
        # State is persisted after each mutation and loaded on construction.
    """

    def __init__(
        self,
        config: MarketConfig,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        identity_ledger: Optional[IdentityLedger] = None,
        payment_ledger: Optional[PaymentLedger] = None,
    ) -> None:
        problems = config.validate()
        if problems:
            raise InvalidConfigError("Invalid market configuration: " + "; ".join(problems))

        self._config = config
        self._event_log = event_log
        self._state_store = state_store

        # Load persisted state or bootstrap from configuration
        if state_store is not None and state_store.exists():
            self._records = state_store.load_records()
            self._fees = FeeSchedule(state_store.load_fee_config())
            self._admin = state_store.load_admin()
            identity_ledger = identity_ledger or state_store.load_identity_ledger()
            payment_ledger = payment_ledger or state_store.load_payment_ledger()
            logger.debug(
                "Loaded %d prompt records from %s",
                self._records.count, state_store.storage_path,
            )
        else:
            self._records = RecordStore()
            self._fees = FeeSchedule(
                FeeConfig(fee_bps=config.fee_bps, fee_recipient=config.fee_recipient),
            )
            self._admin = AdminGate(config.admin_id)

        self._identity: IdentityLedger = identity_ledger or InMemoryIdentityLedger(
            minter=config.operator_id,
            name=config.token_name,
            symbol=config.token_symbol,
            base_uri=config.token_base_uri,
        )
        self._payment: PaymentLedger = payment_ledger or InMemoryPaymentLedger(
            issuer=config.admin_id,
            name=config.asset_name,
            symbol=config.asset_symbol,
            decimals=config.asset_decimals,
        )

        self._atomic = AtomicExecutor(
            [self._records, self._fees, self._admin, self._identity, self._payment],
        )
        self._engine = SettlementEngine(
            self._records,
            self._fees,
            self._admin,
            self._identity,
            self._payment,
            operator_id=config.operator_id,
            atomic=self._atomic,
        )

        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0

        # Set when a state snapshot fails after the audit event committed.
        self._persistence_degraded: bool = False

    @property
    def config(self) -> MarketConfig:
        return self._config

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    @property
    def identity_ledger(self) -> IdentityLedger:
        return self._identity

    @property
    def payment_ledger(self) -> PaymentLedger:
        return self._payment

    # ------------------------------------------------------------------
    # Prompt lifecycle
    # ------------------------------------------------------------------

    def create_prompt(
        self,
        creator: str,
        title: str,
        category: str,
        image_url: str,
        description: str,
        price: int,
    ) -> ServiceResult:
        """Mint a prompt token to the creator and record it as UNLISTED."""
        return self._audited(
            lambda: self._engine.create(
                creator, title, category, image_url, description, price,
            ),
            EventKind.PROMPT_CREATED,
            creator,
            lambda data: {
                "token_id": data["token_id"],
                "creator": creator,
                "image_url": image_url,
                "description": description,
            },
        )

    def list_prompt_for_sale(
        self, seller: str, token_id: int, price: int,
    ) -> ServiceResult:
        """List (or re-price) a prompt the seller owns."""
        return self._audited(
            lambda: self._engine.list_for_sale(seller, token_id, price),
            EventKind.PROMPT_LISTED,
            seller,
            lambda data: {"token_id": token_id, "seller": seller, "price": price},
        )

    def buy_prompt(self, buyer: str, token_id: int) -> ServiceResult:
        """Buy a listed prompt: pay seller and fee recipient, take the token."""
        return self._audited(
            lambda: self._engine.buy(buyer, token_id),
            EventKind.PROMPT_SOLD,
            buyer,
            lambda data: dict(data),
        )

    def burn_token(self, caller: str, token_id: int) -> ServiceResult:
        """Burn a prompt token on the identity ledger.

        The marketplace record is kept and becomes permanently inert:
        it can no longer be listed or bought, and its ID is never reused.
        """
        def _burn() -> ServiceResult:
            self._identity.burn(caller, token_id)
            return ServiceResult(success=True, data={"token_id": token_id})

        return self._audited(
            _burn,
            EventKind.TOKEN_BURNED,
            caller,
            lambda data: {"token_id": token_id, "burned_by": caller},
        )

    # ------------------------------------------------------------------
    # Fee configuration and administration
    # ------------------------------------------------------------------

    def set_fee_percentage(self, caller: str, fee_bps: int) -> ServiceResult:
        """Admin-only: set the protocol fee in basis points."""
        return self._audited(
            lambda: self._engine.set_fee_percentage(caller, fee_bps),
            EventKind.FEE_UPDATED,
            caller,
            lambda data: {"fee_bps": fee_bps},
        )

    def set_fee_recipient(self, caller: str, recipient: str) -> ServiceResult:
        """Admin-only: route future protocol fees to `recipient`."""
        return self._audited(
            lambda: self._engine.set_fee_recipient(caller, recipient),
            EventKind.FEE_RECIPIENT_UPDATED,
            caller,
            lambda data: {"fee_recipient": recipient},
        )

    def upgrade(self, caller: str, code_hash: str) -> ServiceResult:
        """Admin-only: record the hash of newly deployed marketplace code."""
        return self._audited(
            lambda: self._engine.upgrade(caller, code_hash),
            EventKind.CONTRACT_UPGRADED,
            caller,
            lambda data: {"code_hash": data["code_hash"]},
        )

    def nominate_admin(self, caller: str, successor: str) -> ServiceResult:
        """Phase one of the admin handoff."""
        return self._audited(
            lambda: self._gate_result(
                self._admin.nominate(caller, successor),
                {"pending_admin": successor},
            ),
            EventKind.ADMIN_NOMINATED,
            caller,
            lambda data: {"admin": caller, "pending_admin": successor},
        )

    def accept_admin(self, caller: str) -> ServiceResult:
        """Phase two of the admin handoff: the nominee takes over."""
        previous = self._admin.admin
        return self._audited(
            lambda: self._gate_result(self._admin.accept(caller), {"admin": caller}),
            EventKind.ADMIN_ACCEPTED,
            caller,
            lambda data: {"previous_admin": previous, "admin": caller},
        )

    def cancel_admin_nomination(self, caller: str) -> ServiceResult:
        return self._audited(
            lambda: self._gate_result(self._admin.cancel_nomination(caller), {}),
            EventKind.ADMIN_NOMINATION_CANCELLED,
            caller,
            lambda data: {"admin": caller},
        )

    # ------------------------------------------------------------------
    # Reference payment asset
    # ------------------------------------------------------------------

    def fund_account(self, caller: str, to: str, amount: int) -> ServiceResult:
        """Issuer-only: mint reference payment asset to an account."""
        ledger = self._payment
        if not isinstance(ledger, InMemoryPaymentLedger):
            return _unsupported("fund_account")
        return self._ledger_op(
            lambda: ledger.mint(caller, to, amount),
            {"account": to, "amount": amount},
        )

    def approve_payment(self, owner: str, amount: int) -> ServiceResult:
        """Let the marketplace operator pull up to `amount` from `owner`."""
        ledger = self._payment
        if not isinstance(ledger, InMemoryPaymentLedger):
            return _unsupported("approve_payment")
        return self._ledger_op(
            lambda: ledger.approve(owner, self._config.operator_id, amount),
            {"owner": owner, "spender": self._config.operator_id, "amount": amount},
        )

    def balance(self, identity: str) -> int:
        return self._payment.balance(identity)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_prompt(self, token_id: int) -> Optional[PromptRecord]:
        return self._engine.get(token_id)

    def get_all_prompts(self) -> list[PromptRecord]:
        return self._engine.list_all()

    def next_token_id(self) -> int:
        return self._engine.next_token_id()

    def reconcile_owner(self, token_id: int) -> ServiceResult:
        """Report whether the recorded owner still holds the token."""
        return self._engine.reconcile_owner(token_id)

    @property
    def fee_config(self) -> FeeConfig:
        return self._engine.fee_config

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        records = self._engine.list_all()
        fees = self._engine.fee_config
        return {
            "version": __version__,
            "prompts": {
                "total": len(records),
                "next_token_id": self._engine.next_token_id(),
                "by_state": _count_by_state(records),
            },
            "fees": {
                "fee_bps": fees.fee_bps,
                "fee_recipient": fees.fee_recipient,
            },
            "admin": {
                "admin": self._admin.admin,
                "pending_admin": self._admin.pending_admin,
                "code_hash": self._admin.code_hash,
            },
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _audited(
        self,
        operation: Callable[[], ServiceResult],
        kind: EventKind,
        actor_id: str,
        payload: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> ServiceResult:
        """Run an operation and record its event in one atomic unit.

        Fail-closed: if the event cannot be appended, the whole unit is
        rolled back and a PERSISTENCE_FAILURE result is returned. Ledger
        errors raised directly by the operation are rolled back and
        reported with their own kind.
        """
        try:
            with self._atomic.unit():
                result = operation()
                if result.success:
                    self._record_event(kind, actor_id, payload(result.data))
        except _AuditFailure as e:
            logger.error("Audit-trail failure, %s rolled back: %s", kind.value, e)
            return ServiceResult(
                success=False,
                errors=[str(e)],
                error_kind=ErrorKind.PERSISTENCE_FAILURE,
            )
        except LedgerError as e:
            return ServiceResult.rejected(e.to_rejection())

        if not result.success:
            logger.debug("%s rejected: %s", kind.value, "; ".join(result.errors))
            return result

        # Audit event committed; in-memory state stays
        warning = self._safe_persist_post_audit()
        if warning:
            return ServiceResult(success=True, data={**result.data, "warning": warning})
        return result

    def _ledger_op(
        self, operation: Callable[[], None], data: dict[str, Any],
    ) -> ServiceResult:
        """Run an unaudited ledger operation; a failed snapshot rolls it back."""
        try:
            with self._atomic.unit():
                operation()
                self._persist_state()
        except LedgerError as e:
            return ServiceResult.rejected(e.to_rejection())
        except OSError as e:
            return ServiceResult(
                success=False,
                errors=[f"Persistence failure: {e}"],
                error_kind=ErrorKind.PERSISTENCE_FAILURE,
            )
        return ServiceResult(success=True, data=data)

    @staticmethod
    def _gate_result(
        rejection: Optional[Rejection], data: dict[str, Any],
    ) -> ServiceResult:
        if rejection:
            return ServiceResult.rejected(rejection)
        return ServiceResult(success=True, data=data)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self, kind: EventKind, actor_id: str, payload: dict[str, Any],
    ) -> None:
        if self._event_log is None:
            return
        event_id = self._next_event_id()
        try:
            event = EventRecord.create(
                event_id=event_id,
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
            )
            self._event_log.append(event)
        except (ValueError, OSError) as e:
            self._event_counter -= 1
            raise _AuditFailure(f"Event log failure: {e}") from e

    def _persist_state(self) -> None:
        """Persist current state to the state store (if wired).

        Can raise OSError. Callers decide whether that rolls back.
        """
        if self._state_store is None:
            return
        self._state_store.save(
            self._records, self._fees, self._admin, self._identity, self._payment,
        )

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after audit events have been committed.

        MUST NOT rollback in-memory state — the audit trail is already
        durable. Sets _persistence_degraded and returns a warning string.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("State snapshot failed after audit commit: %s", e)
            return f"Persistence degraded: {e}; state committed in audit trail but StateStore is stale"


def _unsupported(operation: str) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[f"{operation} requires the in-memory reference payment ledger"],
        error_kind=ErrorKind.INVALID_ARGUMENT,
    )


def _count_by_state(records: list[PromptRecord]) -> dict[str, int]:
    counts = {state.value: 0 for state in PromptState}
    for record in records:
        counts[record.state.value] += 1
    return counts
