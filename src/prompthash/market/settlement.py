"""Settlement engine — create, list, and buy prompt tokens atomically.

The engine is the only place where money, token identity, and record
state meet. Each operation follows the same shape:

1. Validate arguments and guards against the current record. Nothing has
   been written yet, so a rejection needs no rollback.
2. Call the external ledgers. Any LedgerError escapes the atomic unit,
   which restores the record store, fee schedule, admin gate and both
   ledgers before the error is reported with the ledger's own kind.
3. Write the record last, as one full replacement.

Purchase split:
    fee = floor(price × fee_bps / 10000) → fee recipient
    seller_amount = price - fee          → seller
    token                                → buyer

Invariant: fee + seller_amount == price, for every purchase.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from prompthash.errors import (
    ErrorKind,
    LedgerError,
    Rejection,
    StorageFault,
    TokenNotFoundError,
)
from prompthash.governance.admin import AdminGate
from prompthash.ledgers.identity import IdentityLedger
from prompthash.ledgers.payment import PaymentLedger
from prompthash.market.atomic import AtomicExecutor
from prompthash.market.fees import FeeSchedule
from prompthash.market.listing_state_machine import PromptStateMachine
from prompthash.market.record_store import RecordStore
from prompthash.models.prompt import PromptDraft, PromptRecord
from prompthash.models.result import ServiceResult
from prompthash.models.settlement import FeeConfig, SaleReceipt


class SettlementEngine:
    """Validates and executes marketplace state transitions.

    Usage:
        engine = SettlementEngine(store, fees, admin, identity, payment,
                                  operator_id="prompthash-market")
        result = engine.create("alice", "Title", "art", "https://...", "desc", 10_000)
        result = engine.list_for_sale("alice", result.data["token_id"], 10_000)
        result = engine.buy("bob", 0)

    The operator identity is the minter on the identity ledger and the
    approved spender on both ledgers. Callers are assumed to have been
    authenticated by the entry surface.
    """

    def __init__(
        self,
        store: RecordStore,
        fees: FeeSchedule,
        admin: AdminGate,
        identity: IdentityLedger,
        payment: PaymentLedger,
        operator_id: str,
        atomic: Optional[AtomicExecutor] = None,
    ) -> None:
        self._store = store
        self._fees = fees
        self._admin = admin
        self._identity = identity
        self._payment = payment
        self._operator_id = operator_id
        self._atomic = atomic or AtomicExecutor(
            [store, fees, admin, identity, payment],
        )

    @property
    def operator_id(self) -> str:
        return self._operator_id

    @property
    def fee_config(self) -> FeeConfig:
        return self._fees.config

    # ------------------------------------------------------------------
    # Prompt lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        creator: str,
        title: str,
        category: str,
        image_url: str,
        description: str,
        price: int,
    ) -> ServiceResult:
        """Mint a token to the creator and store its UNLISTED record."""
        rejection = _check_identity(creator, "Creator") or _check_price(price)
        if rejection:
            return ServiceResult.rejected(rejection)

        draft = PromptDraft(
            owner=creator,
            price=price,
            title=title,
            category=category,
            image_url=image_url,
            description=description,
        )
        try:
            with self._atomic.unit():
                expected_id = self._store.next_id
                if self._identity.next_token_id != expected_id:
                    raise StorageFault(
                        f"Record counter ({expected_id}) and token sequence "
                        f"({self._identity.next_token_id}) have diverged"
                    )
                token_id = self._identity.mint(self._operator_id, creator)
                stored_id = self._store.allocate_and_save(draft)
                if stored_id != token_id:
                    raise StorageFault(
                        f"Minted token {token_id} but allocated record {stored_id}"
                    )
        except LedgerError as e:
            return ServiceResult.rejected(e.to_rejection())

        return ServiceResult(
            success=True,
            data={
                "token_id": token_id,
                "owner": creator,
                "price": price,
                "image_url": image_url,
                "description": description,
            },
        )

    def list_for_sale(self, seller: str, token_id: int, price: int) -> ServiceResult:
        """Offer a record at `price`. Re-listing updates the price."""
        rejection = _check_price(price)
        if rejection:
            return ServiceResult.rejected(rejection)

        try:
            with self._atomic.unit():
                record = self._store.get(token_id)
                rejection = PromptStateMachine.check_listing(record, token_id, seller)
                if rejection:
                    return ServiceResult.rejected(rejection)

                # The seller authorises the operator to deliver the token
                # at purchase time. Fails for burned tokens and for sellers
                # who no longer hold the token on the ledger.
                self._identity.approve(seller, self._operator_id, token_id)
                self._store.save(replace(record, for_sale=True, price=price))
        except LedgerError as e:
            return ServiceResult.rejected(e.to_rejection())

        return ServiceResult(
            success=True,
            data={"token_id": token_id, "seller": seller, "price": price},
        )

    def buy(self, buyer: str, token_id: int) -> ServiceResult:
        """Pay the seller and fee recipient and take ownership, atomically."""
        rejection = _check_identity(buyer, "Buyer")
        if rejection:
            return ServiceResult.rejected(rejection)

        try:
            with self._atomic.unit():
                seller = self._identity.owner_of(token_id)
                record = self._store.get(token_id)
                rejection = PromptStateMachine.check_purchase(record, token_id, buyer)
                if rejection:
                    return ServiceResult.rejected(rejection)
                if seller != record.owner:
                    return ServiceResult.rejected(Rejection(
                        ErrorKind.UNAUTHORIZED,
                        f"Recorded owner {record.owner} no longer holds token "
                        f"{token_id} (held by {seller})",
                    ))

                split = self._fees.split(record.price)
                fee_recipient = self._fees.config.fee_recipient

                if split.seller_amount > 0:
                    self._payment.transfer_from(
                        self._operator_id, buyer, seller, split.seller_amount,
                    )
                if split.fee > 0:
                    self._payment.transfer_from(
                        self._operator_id, buyer, fee_recipient, split.fee,
                    )
                self._identity.transfer_from(self._operator_id, seller, buyer, token_id)

                self._store.save(
                    replace(record, owner=buyer, sold=True, for_sale=False),
                )
        except LedgerError as e:
            return ServiceResult.rejected(e.to_rejection())

        receipt = SaleReceipt(
            token_id=token_id,
            seller=seller,
            buyer=buyer,
            fee_recipient=fee_recipient,
            price=split.price,
            fee=split.fee,
            seller_amount=split.seller_amount,
        )
        return ServiceResult(success=True, data=receipt.to_dict())

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_fee_percentage(self, caller: str, fee_bps: int) -> ServiceResult:
        with self._atomic.unit():
            rejection = self._admin.require_admin(caller)
            if rejection is None:
                rejection = self._fees.set_fee_bps(fee_bps)
            if rejection:
                return ServiceResult.rejected(rejection)
        return ServiceResult(success=True, data={"fee_bps": fee_bps})

    def set_fee_recipient(self, caller: str, recipient: str) -> ServiceResult:
        with self._atomic.unit():
            rejection = self._admin.require_admin(caller)
            if rejection is None:
                rejection = self._fees.set_recipient(recipient)
            if rejection:
                return ServiceResult.rejected(rejection)
        return ServiceResult(success=True, data={"fee_recipient": recipient})

    def upgrade(self, caller: str, code_hash: str) -> ServiceResult:
        with self._atomic.unit():
            rejection = self._admin.record_upgrade(caller, code_hash)
            if rejection:
                return ServiceResult.rejected(rejection)
        return ServiceResult(success=True, data={"code_hash": self._admin.code_hash})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, token_id: int) -> Optional[PromptRecord]:
        return self._store.get(token_id)

    def list_all(self) -> list[PromptRecord]:
        return self._store.list_all()

    def next_token_id(self) -> int:
        return self._store.next_id

    def reconcile_owner(self, token_id: int) -> ServiceResult:
        """Compare the recorded owner with the identity ledger's live holder.

        Read-only. The two can diverge when a token moves peer-to-peer on
        the ledger; nothing here rewrites the record.
        """
        with self._atomic.unit():
            record = self._store.get(token_id)
            if record is None:
                return ServiceResult.rejected(
                    Rejection(ErrorKind.NOT_FOUND, f"Prompt not found: {token_id}"),
                )
            try:
                holder: Optional[str] = self._identity.owner_of(token_id)
            except TokenNotFoundError:
                holder = None
        data: dict[str, Any] = {
            "token_id": token_id,
            "recorded_owner": record.owner,
            "ledger_holder": holder,
            "burned": holder is None,
            "diverged": holder != record.owner,
        }
        return ServiceResult(success=True, data=data)


def _check_price(price: Any) -> Optional[Rejection]:
    if not isinstance(price, int) or isinstance(price, bool) or price < 0:
        return Rejection(
            ErrorKind.INVALID_ARGUMENT,
            f"Price must be a non-negative integer, got {price!r}",
        )
    return None


def _check_identity(identity: Any, label: str) -> Optional[Rejection]:
    if not isinstance(identity, str) or not identity.strip():
        return Rejection(ErrorKind.INVALID_ARGUMENT, f"{label} identity must be non-empty")
    return None
