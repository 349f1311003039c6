"""Tests for the in-memory identity and payment ledgers."""

import pytest

from prompthash.errors import (
    ErrorKind,
    InsufficientApprovalError,
    InsufficientFundsError,
    LedgerError,
    NotAuthorizedError,
    TokenNotFoundError,
)
from prompthash.ledgers.identity import IdentityLedger, InMemoryIdentityLedger
from prompthash.ledgers.payment import InMemoryPaymentLedger, PaymentLedger

OPERATOR = "prompthash-market"


@pytest.fixture
def identity() -> InMemoryIdentityLedger:
    return InMemoryIdentityLedger(minter=OPERATOR)


@pytest.fixture
def payment() -> InMemoryPaymentLedger:
    ledger = InMemoryPaymentLedger(issuer="admin")
    ledger.mint("admin", "bob", 10_000)
    return ledger


class TestIdentityLedger:
    def test_satisfies_protocol(self, identity: InMemoryIdentityLedger) -> None:
        assert isinstance(identity, IdentityLedger)

    def test_mint_is_sequential_from_zero(self, identity: InMemoryIdentityLedger) -> None:
        assert identity.mint(OPERATOR, "alice") == 0
        assert identity.mint(OPERATOR, "bob") == 1
        assert identity.next_token_id == 2
        assert identity.owner_of(1) == "bob"
        assert identity.balance_of("alice") == 1

    def test_only_minter_may_mint(self, identity: InMemoryIdentityLedger) -> None:
        with pytest.raises(NotAuthorizedError):
            identity.mint("alice", "alice")
        assert identity.next_token_id == 0

    def test_token_uri(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        assert identity.token_uri(token_id) == "https://api.example.com/v1/0"

    def test_unknown_token_not_found(self, identity: InMemoryIdentityLedger) -> None:
        with pytest.raises(TokenNotFoundError) as exc:
            identity.owner_of(3)
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_approved_operator_transfers(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        identity.approve("alice", OPERATOR, token_id)
        assert identity.get_approved(token_id) == OPERATOR
        identity.transfer_from(OPERATOR, "alice", "bob", token_id)
        assert identity.owner_of(token_id) == "bob"
        assert identity.get_approved(token_id) is None

    def test_unapproved_transfer_rejected(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        with pytest.raises(NotAuthorizedError):
            identity.transfer_from(OPERATOR, "alice", "bob", token_id)

    def test_transfer_from_wrong_holder_rejected(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        with pytest.raises(NotAuthorizedError, match="not the current holder"):
            identity.transfer_from("alice", "carol", "bob", token_id)

    def test_only_holder_may_approve(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        with pytest.raises(NotAuthorizedError):
            identity.approve("mallory", "mallory", token_id)

    def test_operator_approval_for_all(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        identity.set_approval_for_all("alice", "agent", True)
        identity.transfer_from("agent", "alice", "bob", token_id)
        assert identity.owner_of(token_id) == "bob"

    def test_burned_id_never_reused(self, identity: InMemoryIdentityLedger) -> None:
        token_id = identity.mint(OPERATOR, "alice")
        identity.burn("alice", token_id)
        with pytest.raises(TokenNotFoundError):
            identity.owner_of(token_id)
        assert identity.mint(OPERATOR, "alice") == token_id + 1

    def test_dict_round_trip(self, identity: InMemoryIdentityLedger) -> None:
        identity.mint(OPERATOR, "alice")
        identity.approve("alice", OPERATOR, 0)
        identity.set_approval_for_all("alice", "agent", True)
        loaded = InMemoryIdentityLedger.from_dict(identity.to_dict())
        assert loaded.owner_of(0) == "alice"
        assert loaded.get_approved(0) == OPERATOR
        assert loaded.is_approved_for_all("alice", "agent")
        assert loaded.next_token_id == 1


class TestPaymentLedger:
    def test_satisfies_protocol(self, payment: InMemoryPaymentLedger) -> None:
        assert isinstance(payment, PaymentLedger)

    def test_only_issuer_may_mint(self, payment: InMemoryPaymentLedger) -> None:
        with pytest.raises(NotAuthorizedError):
            payment.mint("bob", "bob", 1)
        assert payment.total_supply == 10_000

    def test_transfer_from_consumes_allowance(self, payment: InMemoryPaymentLedger) -> None:
        payment.approve("bob", OPERATOR, 6_000)
        payment.transfer_from(OPERATOR, "bob", "alice", 5_000)
        assert payment.balance("alice") == 5_000
        assert payment.balance("bob") == 5_000
        assert payment.allowance("bob", OPERATOR) == 1_000

    def test_approve_replaces_allowance(self, payment: InMemoryPaymentLedger) -> None:
        payment.approve("bob", OPERATOR, 6_000)
        payment.approve("bob", OPERATOR, 100)
        assert payment.allowance("bob", OPERATOR) == 100

    def test_insufficient_approval(self, payment: InMemoryPaymentLedger) -> None:
        payment.approve("bob", OPERATOR, 10)
        with pytest.raises(InsufficientApprovalError) as exc:
            payment.transfer_from(OPERATOR, "bob", "alice", 11)
        assert exc.value.kind == ErrorKind.INSUFFICIENT_APPROVAL
        assert payment.balance("bob") == 10_000
        assert payment.allowance("bob", OPERATOR) == 10

    def test_insufficient_funds(self, payment: InMemoryPaymentLedger) -> None:
        payment.approve("bob", OPERATOR, 50_000)
        with pytest.raises(InsufficientFundsError) as exc:
            payment.transfer_from(OPERATOR, "bob", "alice", 20_000)
        assert exc.value.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert payment.allowance("bob", OPERATOR) == 50_000

    def test_negative_amount_rejected(self, payment: InMemoryPaymentLedger) -> None:
        with pytest.raises(LedgerError, match="non-negative"):
            payment.transfer("bob", "alice", -5)

    def test_dict_round_trip(self, payment: InMemoryPaymentLedger) -> None:
        payment.approve("bob", OPERATOR, 700)
        loaded = InMemoryPaymentLedger.from_dict(payment.to_dict())
        assert loaded.balance("bob") == 10_000
        assert loaded.allowance("bob", OPERATOR) == 700
        assert loaded.issuer == "admin"
