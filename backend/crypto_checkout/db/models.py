"""
SQLAlchemy ORM Models for Crypto Checkout

Uniqueness and state invariants are enforced with database constraints so
they hold under concurrent writers, not only in application code.
"""
from sqlalchemy import Column, String, BigInteger, DateTime, Text, JSON, CheckConstraint, Index
from sqlalchemy.orm import declarative_base

from ..utils import utcnow

Base = declarative_base()


class TransactionModel(Base):
    """
    ORM model for transactions table.

    Amount is stored in integer cents; provider_charge_id is the join key
    for webhook reconciliation.
    """
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True)
    checkout_id = Column(String(36), nullable=False, unique=True)
    email = Column(String(255), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    currency = Column(String(10), nullable=False, default="USD")
    status = Column(String(16), nullable=False, default="pending", index=True)
    provider_charge_id = Column(String(255), unique=True)
    provider_charge_code = Column(String(255))
    payment_url = Column(Text)
    expires_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'expired')",
            name="transaction_status_check"
        ),
        CheckConstraint("amount_cents > 0", name="transaction_amount_positive"),
        CheckConstraint(
            "(status = 'completed' AND confirmed_at IS NOT NULL) OR "
            "(status <> 'completed' AND confirmed_at IS NULL)",
            name="transaction_confirmed_at_check"
        ),
        Index("idx_transactions_status_created", "status", "created_at"),
    )


class WebhookEventModel(Base):
    """
    ORM model for webhook_events table.

    Audit and dedup ledger: the unique webhook_id is the idempotency gate.
    Rows are never updated or deleted.
    """
    __tablename__ = "webhook_events"

    id = Column(String(36), primary_key=True)
    webhook_id = Column(String(255), nullable=False, unique=True)
    webhook_type = Column(String(50), nullable=False, index=True)
    provider_charge_id = Column(String(255), index=True)
    processed_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    payload = Column(JSON)
