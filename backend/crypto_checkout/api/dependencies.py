"""
FastAPI dependencies.

Services are built once in the application lifespan and kept on app.state;
endpoints receive them through these accessors.
"""
from fastapi import Request

from ..db.init_db import Database
from ..services.checkout_service import CheckoutService
from ..services.transaction_store import TransactionStore
from ..services.webhook_service import WebhookService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.webhook_service
