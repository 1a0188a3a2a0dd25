"""Builders for transactions and webhook payloads used across tests."""
import json
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from crypto_checkout.models.transactions import Transaction, TransactionStatus
from crypto_checkout.utils import utcnow

VALID_SIGNATURE = "sha256=test_signature"


def make_transaction(**overrides) -> Transaction:
    now = utcnow()
    fields = {
        "id": str(uuid.uuid4()),
        "checkout_id": str(uuid.uuid4()),
        "email": "test@example.com",
        "amount": Decimal("99.99"),
        "currency": "USD",
        "status": TransactionStatus.PENDING,
        "provider_charge_id": str(uuid.uuid4()),
        "provider_charge_code": "CHG-TEST1234",
        "payment_url": "https://superai.coinbase.com/pay/CHG-TEST1234",
        "expires_at": now + timedelta(minutes=15),
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Transaction(**fields)


def make_event(
    event_type: str,
    charge_id: str,
    webhook_id: str = None,
    created_at: str = "2024-01-01T12:20:00Z",
    checkout_id: str = "test-checkout-1",
) -> dict:
    return {
        "id": webhook_id or str(uuid.uuid4()),
        "type": event_type,
        "created_at": created_at,
        "data": {
            "id": charge_id,
            "code": "CHG-TEST1234",
            "name": "Event Ticket",
            "description": "",
            "pricing": {
                "local": {"amount": "99.99", "currency": "USD"},
            },
            "metadata": {
                "email": "test@example.com",
                "checkout_id": checkout_id,
            },
            "timeline": [
                {"time": created_at, "status": "NEW"},
            ],
        },
    }


def encode(event: dict) -> bytes:
    return json.dumps(event).encode("utf-8")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
