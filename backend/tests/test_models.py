"""Unit tests for the transaction state machine, money helpers and signatures."""
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from crypto_checkout.models.transactions import (
    TERMINAL_STATUSES,
    TransactionPage,
    TransactionStatus,
    can_transition,
)
from crypto_checkout.services.signature_service import (
    compute_signature,
    verify_hmac_signature,
    verify_structural_signature,
)
from crypto_checkout.utils import from_cents, isoformat_z, mask_email, sanitize_body, to_cents, to_naive_utc

from helpers import make_transaction


@pytest.mark.parametrize("target", [
    TransactionStatus.COMPLETED,
    TransactionStatus.FAILED,
    TransactionStatus.EXPIRED,
])
def test_pending_can_reach_every_terminal_state(target):
    assert can_transition(TransactionStatus.PENDING, target)


@pytest.mark.parametrize("current", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_states_are_sticky(current):
    for target in TransactionStatus:
        assert not can_transition(current, target)


def test_pending_cannot_stay_pending():
    assert not can_transition(TransactionStatus.PENDING, TransactionStatus.PENDING)


def test_confirmed_at_requires_completed():
    with pytest.raises(PydanticValidationError):
        make_transaction(status=TransactionStatus.PENDING, confirmed_at=datetime(2024, 1, 1))
    with pytest.raises(PydanticValidationError):
        make_transaction(status=TransactionStatus.COMPLETED, confirmed_at=None)

    completed = make_transaction(status=TransactionStatus.COMPLETED, confirmed_at=datetime(2024, 1, 1))
    assert completed.confirmed_at == datetime(2024, 1, 1)


def test_amount_must_be_positive():
    with pytest.raises(PydanticValidationError):
        make_transaction(amount=Decimal("0"))


@pytest.mark.parametrize("amount, cents", [
    (Decimal("99.99"), 9999),
    (Decimal("0.01"), 1),
    (Decimal("0.1"), 10),
    (Decimal("1000"), 100000),
])
def test_cents_conversion(amount, cents):
    assert to_cents(amount) == cents
    assert from_cents(cents) == amount


def test_from_cents_has_two_places():
    assert str(from_cents(500)) == "5.00"


def test_empty_page_pagination():
    pagination = TransactionPage(transactions=[], page=1, page_size=10, total=0).pagination

    assert pagination.total_pages == 0
    assert pagination.has_next is False
    assert pagination.has_prev is False


def test_pagination_serializes_camel_case():
    pagination = TransactionPage(transactions=[], page=1, page_size=10, total=11).pagination

    assert pagination.model_dump(by_alias=True) == {
        "page": 1,
        "limit": 10,
        "total": 11,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }


def test_transaction_json_shape():
    transaction = make_transaction(
        amount=Decimal("12.5"),
        created_at=datetime(2024, 1, 1, 12, 0),
        updated_at=datetime(2024, 1, 1, 12, 0),
    )

    data = transaction.model_dump(mode="json")

    assert data["amount"] == "12.50"
    assert data["status"] == "pending"
    assert data["created_at"] == "2024-01-01T12:00:00.000Z"
    assert data["confirmed_at"] is None


def test_to_naive_utc_converts_offsets():
    from datetime import timezone, timedelta

    aware = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2024, 1, 1, 12, 0)
    assert to_naive_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1)
    assert isoformat_z(None) is None


def test_structural_signature():
    assert verify_structural_signature(b"{}", "sha256=abc")
    assert not verify_structural_signature(b"{}", None)
    assert not verify_structural_signature(b"{}", "abc")


def test_hmac_signature_round_trip():
    body = b'{"id": "evt_1"}'
    signature = compute_signature(body, "secret")

    assert signature.startswith("sha256=")
    assert verify_hmac_signature(body, signature, "secret")
    assert not verify_hmac_signature(body, signature, "other")
    assert not verify_hmac_signature(body + b" ", signature, "secret")
    assert not verify_hmac_signature(body, None, "secret")


def test_log_sanitizing_masks_emails():
    assert mask_email("test@example.com") == "t***@example.com"
    assert mask_email(None) is None
    assert sanitize_body({"amount": 5, "email": "bob@example.com", "data": {"email": "x@y.z"}}) == {
        "amount": 5,
        "email": "b***@example.com",
        "data": {"email": "x***@y.z"},
    }
