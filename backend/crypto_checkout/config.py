"""
Crypto Checkout Configuration Module

Loads environment variables for the checkout and webhook service.
"""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - The database URL selects the backing engine once, at startup
    - The charge gateway is simulated; latency and expiry are configurable
    - Webhook verification is structural by default, HMAC when a secret is set
    """

    # Service
    app_name: str = "Crypto Checkout Simulator API"
    version: str = "1.0.0"
    environment: str = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    base_url: str = "http://localhost:8000"

    # Database
    database_url: str = "sqlite+aiosqlite:///./crypto_checkout.db"
    db_pool_size: int = 5
    db_connect_timeout_seconds: int = 30

    # Charge gateway (simulated Coinbase Commerce)
    default_currency: str = "USD"
    hosted_checkout_base_url: str = "https://superai.coinbase.com/pay"
    charge_expiry_minutes: int = 15
    gateway_latency_ms: int = 500
    gateway_timeout_seconds: float = 5.0
    checkout_timeout_seconds: float = 10.0

    # Webhooks
    webhook_verification: Literal["structural", "hmac"] = "structural"
    webhook_secret: str = "fake-webhook-secret"

    # Pagination
    max_page_size: int = 100
    default_page_size: int = 10

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
