"""
Database package for Crypto Checkout.

Exports the database handle, schema setup and ORM models.
"""
from .init_db import Database, build_engine, open_database, initialize_database
from .models import Base, TransactionModel, WebhookEventModel

__all__ = [
    "Database",
    "build_engine",
    "open_database",
    "initialize_database",
    "Base",
    "TransactionModel",
    "WebhookEventModel",
]
