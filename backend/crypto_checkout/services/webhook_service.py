"""
Webhook Service

Reconciles transaction state from provider notifications.

Per delivery:
1. Authenticate the signature header (401 on failure, nothing written)
2. Validate the payload schema (400 on failure, nothing written)
3. Record the event in the dedup ledger; a duplicate webhook id means the
   delivery was already handled and resolves to success
4. Apply the transition for the event type, in the same database
   transaction as step 3:
   - charge:created    -> audit row only
   - charge:confirmed  -> completed, confirmed_at = event time
   - charge:failed     -> failed
   - unknown types     -> audit row only, logged
   Unknown charges and already-terminal transactions are logged no-ops.

Deliveries may be duplicated, concurrent and reordered; the unique ledger
key plus the pending-only UPDATE keep the outcome the same in every order.
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..models.transactions import TransactionStatus
from ..models.webhooks import WebhookEvent, WebhookEventRecord, WebhookEventType, WebhookOutcome
from ..utils import to_naive_utc, utcnow
from .charge_gateway import ChargeGateway
from .checkout_service import describe_validation_error
from .transaction_store import StoreSession, TransactionStore

logger = logging.getLogger(__name__)

TARGET_STATUS = {
    WebhookEventType.CHARGE_CONFIRMED: TransactionStatus.COMPLETED,
    WebhookEventType.CHARGE_FAILED: TransactionStatus.FAILED,
}


def parse_webhook_body(raw_body: bytes) -> Dict[str, Any]:
    """Decode a raw JSON body into a dict, or raise ValidationError."""
    try:
        body = json.loads(raw_body or b"null")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid payload") from e
    if not isinstance(body, dict):
        raise ValidationError("Invalid payload")
    return body


class WebhookService:
    """Webhook reconciler. Holds no state of its own between deliveries."""

    def __init__(self, store: TransactionStore, gateway: ChargeGateway):
        self.store = store
        self.gateway = gateway

    def authenticate(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self.gateway.verify_webhook_authenticity(raw_body, signature):
            logger.warning(f"Invalid webhook signature: {(signature or '')[:20]}")
            raise AuthenticationError("Invalid signature")

    def validate(self, body: Dict[str, Any]) -> WebhookEvent:
        try:
            return WebhookEvent.model_validate(body)
        except PydanticValidationError as e:
            logger.warning(f"Invalid webhook payload: {describe_validation_error(e)}")
            raise ValidationError("Invalid payload") from e

    async def handle_delivery(self, raw_body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """
        Authenticate, validate and reconcile one raw delivery.

        Raises:
            AuthenticationError: bad or missing signature
            ValidationError: body is not a valid event
            InternalError: persistence failure (the provider will redeliver)
        """
        self.authenticate(raw_body, signature)
        body = parse_webhook_body(raw_body)
        event = self.validate(body)
        return await self.process_event(event, body)

    async def process_event(self, event: WebhookEvent, payload: Dict[str, Any]) -> WebhookOutcome:
        """
        Dedup and apply an already-authenticated, validated event.

        Args:
            event: Parsed event
            payload: Original body, stored verbatim in the ledger

        Returns:
            WebhookOutcome describing what happened
        """
        record = WebhookEventRecord(
            id=str(uuid.uuid4()),
            webhook_id=event.id,
            webhook_type=event.type,
            provider_charge_id=event.charge_id,
            processed_at=utcnow(),
            payload=payload,
        )

        try:
            async with self.store.atomic() as tx:
                await tx.record_webhook_event(record)
                outcome = await self._apply(tx, event)
        except ConflictError:
            logger.info(f"Duplicate webhook {event.id} ({event.type}), already processed")
            return WebhookOutcome.DUPLICATE

        logger.info(
            f"Webhook processed: id={event.id}, type={event.type}, "
            f"charge={event.charge_id}, outcome={outcome.value}"
        )
        return outcome

    async def _apply(self, tx: StoreSession, event: WebhookEvent) -> WebhookOutcome:
        event_type = event.event_type

        if event_type is None:
            logger.warning(f"Unknown webhook type {event.type!r} for charge {event.charge_id}")
            return WebhookOutcome.IGNORED

        if event_type == WebhookEventType.CHARGE_CREATED:
            logger.info(f"Charge created webhook received for charge {event.charge_id}")
            return WebhookOutcome.RECORDED

        target = TARGET_STATUS[event_type]
        confirmed_at = self._confirmation_time(event) if target == TransactionStatus.COMPLETED else None

        try:
            result = await tx.update_status_by_charge_id(event.charge_id, target, confirmed_at)
        except NotFoundError:
            logger.warning(
                f"Webhook {event.id} references unknown charge {event.charge_id}; recorded only"
            )
            return WebhookOutcome.UNKNOWN_CHARGE

        if not result.applied:
            return WebhookOutcome.ALREADY_TERMINAL
        return WebhookOutcome.APPLIED

    @staticmethod
    def _confirmation_time(event: WebhookEvent) -> datetime:
        return to_naive_utc(event.created_at) or utcnow()
