"""
Charge Gateway

Interface to the payment provider: create a charge for a checkout and
authenticate inbound webhooks. The deployed implementation is simulated
(see mocks/charge_gateway.py); a real client plugs in behind the same class.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from ..config import Settings
from .signature_service import SignatureVerifier, hmac_verifier, verify_structural_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeRequest:
    amount: Decimal
    email: str
    currency: str = "USD"
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Charge:
    """Provider-side charge created for a checkout."""
    charge_id: str
    charge_code: str
    hosted_url: str
    expires_at: datetime


class ChargeGateway(ABC):
    """
    Provider client contract.

    create_charge must raise GatewayError for network, timeout and 5xx
    failures so the checkout can fail cleanly.
    """

    @abstractmethod
    async def create_charge(self, request: ChargeRequest) -> Charge:
        ...

    @abstractmethod
    def verify_webhook_authenticity(self, raw_body: bytes, signature: Optional[str]) -> bool:
        ...


def build_signature_verifier(app_settings: Settings) -> SignatureVerifier:
    """Pick the webhook verifier once, from configuration."""
    if app_settings.webhook_verification == "hmac":
        logger.info("Webhook verification: HMAC-SHA256")
        return hmac_verifier(app_settings.webhook_secret)
    logger.info("Webhook verification: structural")
    return verify_structural_signature


def build_charge_gateway(app_settings: Settings) -> ChargeGateway:
    """Create the configured gateway (always the simulated provider in this deployment)."""
    from ..mocks.charge_gateway import MockChargeGateway

    return MockChargeGateway(
        hosted_checkout_base_url=app_settings.hosted_checkout_base_url,
        expiry_minutes=app_settings.charge_expiry_minutes,
        latency_ms=app_settings.gateway_latency_ms,
        verifier=build_signature_verifier(app_settings),
    )
