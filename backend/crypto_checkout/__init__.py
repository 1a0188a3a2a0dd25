"""Crypto Checkout: checkout sessions and payment webhook reconciliation."""

__version__ = "1.0.0"
