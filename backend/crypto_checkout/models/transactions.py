"""
Pydantic Transaction Models

Represents a checkout transaction and its lifecycle:

    pending -> completed   (terminal success)
    pending -> failed      (terminal failure)
    pending -> expired     (terminal, no sweep triggers it yet)

Terminal states are sticky: no transition leaves them.
"""
import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, FrozenSet
from pydantic import BaseModel, EmailStr, Field, field_serializer, field_validator, model_validator

from ..utils import isoformat_z


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


TERMINAL_STATUSES: FrozenSet[TransactionStatus] = frozenset({
    TransactionStatus.COMPLETED,
    TransactionStatus.FAILED,
    TransactionStatus.EXPIRED,
})

ALLOWED_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.PENDING: TERMINAL_STATUSES,
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.EXPIRED: frozenset(),
}


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    """True if the state machine allows moving from current to target."""
    return target in ALLOWED_TRANSITIONS[current]


class CheckoutRequest(BaseModel):
    """Purchase request: a positive amount with at most 2 decimal places and an email."""
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    email: EmailStr

    @field_validator("email", mode="wrap")
    @classmethod
    def keep_submitted_email(cls, value, handler):
        """Validate as an email address but keep the address exactly as submitted."""
        handler(value)
        return value

    model_config = {
        "json_schema_extra": {
            "example": {"amount": 99.99, "email": "customer@example.com"}
        }
    }


class CheckoutResult(BaseModel):
    """What the client needs to continue payment on the hosted page."""
    payment_url: str
    checkout_id: str
    expires_at: datetime

    @field_serializer("expires_at")
    def serialize_expires_at(self, value: datetime) -> str:
        return isoformat_z(value)


class Transaction(BaseModel):
    """
    Unit of payment state.

    Invariants:
    - amount is always > 0 and carries cent precision
    - confirmed_at is set if and only if status is completed
    """
    id: str
    checkout_id: str
    email: str
    amount: Decimal = Field(gt=0)
    currency: str = "USD"
    status: TransactionStatus
    provider_charge_id: Optional[str] = None
    provider_charge_code: Optional[str] = None
    payment_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def validate_confirmation(self):
        """Ensure confirmed_at tracks the completed status."""
        completed = self.status == TransactionStatus.COMPLETED
        if completed != (self.confirmed_at is not None):
            raise ValueError(
                f"confirmed_at must be set only for completed transactions (status={self.status.value})"
            )
        return self

    @field_serializer("expires_at", "confirmed_at", "created_at", "updated_at")
    def serialize_timestamps(self, value: Optional[datetime]) -> Optional[str]:
        return isoformat_z(value)

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return f"{value:.2f}"

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "0d6f5c4e-8f0a-4c55-9a53-3a4d8f1b2c71",
                "checkout_id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "customer@example.com",
                "amount": "99.99",
                "currency": "USD",
                "status": "completed",
                "provider_charge_id": "4b1e7c1a-6d0e-4f2b-9f57-2f1d1a8e9c10",
                "provider_charge_code": "CHG-ABC12345",
                "payment_url": "https://superai.coinbase.com/pay/CHG-ABC12345",
                "expires_at": "2024-01-01T12:30:00.000Z",
                "confirmed_at": "2024-01-01T12:20:00.000Z",
                "created_at": "2024-01-01T12:15:00.000Z",
                "updated_at": "2024-01-01T12:20:00.000Z"
            }
        }
    }


class TransactionFilter(BaseModel):
    status: Optional[TransactionStatus] = None
    email: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(serialization_alias="totalPages")
    has_next: bool = Field(serialization_alias="hasNext")
    has_prev: bool = Field(serialization_alias="hasPrev")


class TransactionPage(BaseModel):
    """One page of transactions plus the total matching count."""
    transactions: List[Transaction]
    page: int
    page_size: int
    total: int

    @property
    def pagination(self) -> Pagination:
        total_pages = math.ceil(self.total / self.page_size)
        return Pagination(
            page=self.page,
            limit=self.page_size,
            total=self.total,
            total_pages=total_pages,
            has_next=self.page < total_pages,
            has_prev=self.page > 1,
        )


class TransactionStats(BaseModel):
    """Aggregate counts taken from one consistent snapshot."""
    total: int = 0
    pending: int = 0
    completed: int = 0
    failed: int = 0
