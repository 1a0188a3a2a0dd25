"""
Checkout API Endpoint

Creates a crypto checkout session through the (simulated) Coinbase Commerce
gateway and returns the hosted payment URL.
"""
from fastapi import APIRouter, Body, Depends
from typing import Dict, Any

from ..services.checkout_service import CheckoutService
from .dependencies import get_checkout_service

router = APIRouter()


@router.post("/checkout")
async def create_checkout_endpoint(
    payload: Any = Body(None),
    checkout_service: CheckoutService = Depends(get_checkout_service)
) -> Dict[str, Any]:
    """
    Create a new checkout session.

    Request Body:
        {"amount": 99.99, "email": "customer@example.com"}

    Returns:
        {
            "success": true,
            "data": {
                "payment_url": str,
                "checkout_id": str,
                "expires_at": str  # ISO 8601, 15 minutes out
            }
        }

    Errors:
        400 invalid amount or email, 502 provider failure, 504 timeout
    """
    result = await checkout_service.checkout(payload)

    return {
        "success": True,
        "data": result.model_dump(mode="json")
    }
