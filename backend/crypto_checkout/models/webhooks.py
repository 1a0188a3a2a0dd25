"""
Pydantic Webhook Models

Schema for Coinbase Commerce style charge notifications and the
audit ledger record written for each accepted delivery.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, EmailStr, Field


class WebhookEventType(str, Enum):
    CHARGE_CREATED = "charge:created"
    CHARGE_CONFIRMED = "charge:confirmed"
    CHARGE_FAILED = "charge:failed"


class WebhookOutcome(str, Enum):
    """What the reconciler did with a delivery. Every outcome is a success response."""
    APPLIED = "applied"
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    ALREADY_TERMINAL = "already_terminal"
    UNKNOWN_CHARGE = "unknown_charge"
    IGNORED = "ignored"


class PricingAmount(BaseModel):
    amount: str
    currency: str


class TimelineEntry(BaseModel):
    time: datetime
    status: str


class ChargeMetadata(BaseModel):
    """Metadata attached to the charge at checkout time."""
    email: EmailStr
    checkout_id: str = Field(min_length=1)

    model_config = {"extra": "allow"}


class ChargeData(BaseModel):
    """Provider-side charge referenced by the event."""
    id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    metadata: ChargeMetadata
    name: Optional[str] = None
    description: Optional[str] = None
    pricing: Optional[Dict[str, PricingAmount]] = None
    timeline: Optional[List[TimelineEntry]] = None

    model_config = {"extra": "allow"}


class WebhookEvent(BaseModel):
    """
    Inbound webhook payload.

    The type is kept as a free string: providers add event kinds over time
    and unknown kinds must still be accepted.
    """
    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    created_at: datetime
    data: ChargeData

    model_config = {
        "extra": "allow",
        "json_schema_extra": {
            "example": {
                "id": "f81d4fae-7dec-11d0-a765-00a0c91e6bf6",
                "type": "charge:confirmed",
                "created_at": "2024-01-01T12:20:00Z",
                "data": {
                    "id": "4b1e7c1a-6d0e-4f2b-9f57-2f1d1a8e9c10",
                    "code": "CHG-ABC12345",
                    "metadata": {
                        "email": "customer@example.com",
                        "checkout_id": "550e8400-e29b-41d4-a716-446655440000"
                    }
                }
            }
        }
    }

    @property
    def event_type(self) -> Optional[WebhookEventType]:
        """Known event type, or None for kinds this service does not handle."""
        try:
            return WebhookEventType(self.type)
        except ValueError:
            return None

    @property
    def charge_id(self) -> str:
        return self.data.id


class WebhookEventRecord(BaseModel):
    """Dedup ledger entry, one per accepted delivery."""
    id: str
    webhook_id: str
    webhook_type: str
    provider_charge_id: Optional[str] = None
    processed_at: datetime
    payload: Dict[str, Any]
