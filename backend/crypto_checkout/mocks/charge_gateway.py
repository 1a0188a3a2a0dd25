"""
Mock Charge Gateway

Simulates Coinbase Commerce charge creation. Never settles anything.

Mock Behavior:
- Every call succeeds after a fixed artificial delay
- Fresh UUID charge id, CHG-XXXXXXXX code and hosted URL per call
- Charges expire a fixed number of minutes after creation
"""
import asyncio
import logging
import secrets
import string
import uuid
from datetime import timedelta
from typing import Optional

from ..services.charge_gateway import Charge, ChargeGateway, ChargeRequest
from ..services.signature_service import SignatureVerifier, verify_structural_signature
from ..utils import mask_email, utcnow

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def generate_charge_code() -> str:
    """Human-readable charge reference, e.g. CHG-7K2M9QXA."""
    return "CHG-" + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class MockChargeGateway(ChargeGateway):

    def __init__(
        self,
        hosted_checkout_base_url: str = "https://superai.coinbase.com/pay",
        expiry_minutes: int = 15,
        latency_ms: int = 500,
        verifier: SignatureVerifier = verify_structural_signature,
    ):
        self.hosted_checkout_base_url = hosted_checkout_base_url.rstrip("/")
        self.expiry_minutes = expiry_minutes
        self.latency_ms = latency_ms
        self._verifier = verifier

    async def create_charge(self, request: ChargeRequest) -> Charge:
        """
        Create a simulated charge.

        Args:
            request: Amount, payer email and checkout metadata

        Returns:
            Charge with id, code, hosted URL and expiry
        """
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        charge_code = generate_charge_code()
        charge = Charge(
            charge_id=str(uuid.uuid4()),
            charge_code=charge_code,
            hosted_url=f"{self.hosted_checkout_base_url}/{charge_code}",
            expires_at=utcnow() + timedelta(minutes=self.expiry_minutes),
        )

        logger.info(
            f"Mock charge created: id={charge.charge_id}, code={charge_code}, "
            f"amount={request.amount}, email={mask_email(request.email)}"
        )
        return charge

    def verify_webhook_authenticity(self, raw_body: bytes, signature: Optional[str]) -> bool:
        logger.debug(
            f"Validating webhook signature: payload_length={len(raw_body)}, "
            f"signature={(signature or '')[:20]}..."
        )
        return self._verifier(raw_body, signature)
