"""
Checkout Service Exception Hierarchy

Every error carries the HTTP status it maps to and a human-readable message.
Responses never include stack traces or internal identifiers.
"""
from typing import Optional, Dict, Any


class CheckoutServiceError(Exception):
    """
    Base exception for all checkout service errors.

    The message is safe to show to API callers; details are for logs only.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "success": False,
            "error": self.message
        }


class ValidationError(CheckoutServiceError):
    """
    Malformed or out-of-range input.

    Examples:
    - Non-positive or non-numeric checkout amount
    - Malformed email address
    - Webhook payload missing required fields
    - Page size above the cap
    """

    status_code = 400


class AuthenticationError(CheckoutServiceError):
    """Webhook signature missing or invalid."""

    status_code = 401


class NotFoundError(CheckoutServiceError):
    """Requested transaction does not exist."""

    status_code = 404


class ConflictError(CheckoutServiceError):
    """
    Uniqueness violation in the transaction store.

    Examples:
    - checkout_id or provider_charge_id already recorded
    - webhook_id already in the dedup ledger (resolved to success by the reconciler)
    """

    status_code = 409


class GatewayError(CheckoutServiceError):
    """
    Charge gateway call failed.

    Examples:
    - Network failure or 5xx from the provider
    - Provider call exceeded its timeout
    """

    status_code = 502


class UpstreamError(CheckoutServiceError):
    """Checkout could not be completed because the provider failed."""

    status_code = 502


class CheckoutTimeoutError(CheckoutServiceError):
    """Checkout exceeded its overall deadline; the caller should retry."""

    status_code = 504


class InternalError(CheckoutServiceError):
    """Unclassified persistence or runtime failure."""

    status_code = 500
