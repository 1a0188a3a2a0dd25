"""
Webhook API Endpoint

Receives charge notifications from the payment provider. The raw body is
read before parsing so the signature covers exactly what was sent.
"""
from fastapi import APIRouter, Depends, Header, Request
from typing import Dict, Any, Optional
import logging

from ..services.webhook_service import WebhookService
from .dependencies import get_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def receive_webhook_endpoint(
    request: Request,
    x_cc_webhook_signature: Optional[str] = Header(None),
    webhook_service: WebhookService = Depends(get_webhook_service)
) -> Dict[str, Any]:
    """
    Process a provider webhook.

    Headers:
        X-CC-Webhook-Signature: signature over the raw body

    Returns:
        {"success": true} for processed, duplicate, unknown-charge and
        unknown-type deliveries alike

    Errors:
        401 invalid signature, 400 invalid payload, 500 persistence failure
        (the provider retries; redelivery is idempotent)
    """
    raw_body = await request.body()
    outcome = await webhook_service.handle_delivery(raw_body, x_cc_webhook_signature)
    logger.debug(f"Webhook delivery outcome: {outcome.value}")

    return {"success": True}
