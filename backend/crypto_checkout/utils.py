"""Small shared helpers: UTC clock, money conversion, log sanitizing."""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_z(value: Optional[datetime]) -> Optional[str]:
    """Render a naive UTC datetime as ISO-8601 with a trailing Z."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat(timespec="milliseconds") + "Z"


def to_cents(amount: Decimal) -> int:
    """Convert a currency amount to integer minor units."""
    return int((amount / CENT).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer minor units back to a 2-place Decimal."""
    return (Decimal(cents) * CENT).quantize(CENT)


def mask_email(email: Any) -> Any:
    """Mask the local part of an email for logging: test@x.com -> t***@x.com."""
    if not isinstance(email, str) or "@" not in email:
        return email
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def sanitize_body(body: Any) -> Any:
    """Return a copy of a request body that is safe to log."""
    if not isinstance(body, dict):
        return body
    sanitized: Dict[str, Any] = {}
    for key, value in body.items():
        if key == "email":
            sanitized[key] = mask_email(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_body(value)
        else:
            sanitized[key] = value
    return sanitized
