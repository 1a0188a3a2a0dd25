"""
Checkout Service

Synchronous purchase flow: validate -> create provider charge -> persist a
pending transaction. Nothing is written unless the provider call succeeds,
so a failed checkout never leaves a partial row behind.
"""
import asyncio
import logging
import uuid
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import CheckoutTimeoutError, GatewayError, UpstreamError, ValidationError
from ..models.transactions import CheckoutRequest, CheckoutResult, Transaction, TransactionStatus
from ..utils import mask_email, sanitize_body, utcnow
from .charge_gateway import Charge, ChargeGateway, ChargeRequest
from .transaction_store import TransactionStore

logger = logging.getLogger(__name__)


def describe_validation_error(exc: PydanticValidationError) -> str:
    """First violated field as 'field: reason'."""
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "body"
    return f"{field}: {error['msg']}"


def parse_checkout_request(payload: Any) -> CheckoutRequest:
    """
    Validate a raw checkout body.

    Raises:
        ValidationError: naming the first violated field
    """
    try:
        return CheckoutRequest.model_validate(payload)
    except PydanticValidationError as e:
        message = f"Invalid request: {describe_validation_error(e)}"
        logger.warning(f"Invalid checkout request: {message}, body={sanitize_body(payload)}")
        raise ValidationError(message) from e


class CheckoutService:
    """Checkout orchestrator. Never blocks on, or locks against, the webhook path."""

    def __init__(
        self,
        store: TransactionStore,
        gateway: ChargeGateway,
        currency: str = "USD",
        gateway_timeout_seconds: float = 5.0,
        checkout_timeout_seconds: float = 10.0,
    ):
        self.store = store
        self.gateway = gateway
        self.currency = currency
        self.gateway_timeout_seconds = gateway_timeout_seconds
        self.checkout_timeout_seconds = checkout_timeout_seconds

    async def checkout(self, payload: Any) -> CheckoutResult:
        """
        Create a payment session.

        Args:
            payload: Raw request body ({amount, email})

        Returns:
            CheckoutResult with payment_url, checkout_id and expires_at

        Raises:
            ValidationError: amount or email invalid
            UpstreamError: provider failed; nothing persisted
            ConflictError: id collision on insert; caller may retry
            CheckoutTimeoutError: overall deadline exceeded; the checkout may
                still have succeeded server-side
        """
        try:
            return await asyncio.wait_for(
                self._checkout(payload),
                timeout=self.checkout_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Checkout exceeded {self.checkout_timeout_seconds}s deadline")
            raise CheckoutTimeoutError("Checkout timed out, please retry") from e

    async def _checkout(self, payload: Any) -> CheckoutResult:
        request = parse_checkout_request(payload)

        transaction_id = str(uuid.uuid4())
        checkout_id = str(uuid.uuid4())

        charge = await self._create_charge(request, checkout_id)

        now = utcnow()
        transaction = Transaction(
            id=transaction_id,
            checkout_id=checkout_id,
            email=request.email,
            amount=request.amount,
            currency=self.currency,
            status=TransactionStatus.PENDING,
            provider_charge_id=charge.charge_id,
            provider_charge_code=charge.charge_code,
            payment_url=charge.hosted_url,
            expires_at=charge.expires_at,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(transaction)

        logger.info(
            f"Checkout session created: checkout_id={checkout_id}, "
            f"email={mask_email(request.email)}, amount={request.amount}"
        )

        return CheckoutResult(
            payment_url=charge.hosted_url,
            checkout_id=checkout_id,
            expires_at=charge.expires_at,
        )

    async def _create_charge(self, request: CheckoutRequest, checkout_id: str) -> Charge:
        charge_request = ChargeRequest(
            amount=request.amount,
            email=request.email,
            currency=self.currency,
            metadata={"email": request.email, "checkout_id": checkout_id},
        )
        try:
            return await asyncio.wait_for(
                self.gateway.create_charge(charge_request),
                timeout=self.gateway_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Charge gateway timed out after {self.gateway_timeout_seconds}s")
            raise UpstreamError("Failed to create payment session") from e
        except GatewayError as e:
            logger.error(f"Charge gateway failed: {e.message}", extra={"details": e.details})
            raise UpstreamError("Failed to create payment session") from e
