"""Pydantic models for transactions and webhook events."""
from .transactions import (
    TransactionStatus,
    CheckoutRequest,
    CheckoutResult,
    Transaction,
    TransactionFilter,
    TransactionPage,
    Pagination,
    TransactionStats,
    TERMINAL_STATUSES,
    can_transition,
)
from .webhooks import (
    WebhookEventType,
    WebhookEvent,
    WebhookEventRecord,
    WebhookOutcome,
)

__all__ = [
    "TransactionStatus",
    "CheckoutRequest",
    "CheckoutResult",
    "Transaction",
    "TransactionFilter",
    "TransactionPage",
    "Pagination",
    "TransactionStats",
    "TERMINAL_STATUSES",
    "can_transition",
    "WebhookEventType",
    "WebhookEvent",
    "WebhookEventRecord",
    "WebhookOutcome",
]
