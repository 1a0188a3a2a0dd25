"""
Service layer: transaction store, charge gateway, checkout and webhook flows.
"""
from .transaction_store import TransactionStore, StoreSession, TransitionResult
from .charge_gateway import Charge, ChargeGateway, ChargeRequest, build_charge_gateway
from .checkout_service import CheckoutService
from .webhook_service import WebhookService

__all__ = [
    "TransactionStore",
    "StoreSession",
    "TransitionResult",
    "Charge",
    "ChargeGateway",
    "ChargeRequest",
    "build_charge_gateway",
    "CheckoutService",
    "WebhookService",
]
