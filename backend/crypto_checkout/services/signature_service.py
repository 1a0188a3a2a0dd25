"""
Webhook Signature Verification

Two verifiers share one call shape, so the gateway can switch between them
without touching callers:

- structural: header present and in "sha256=<value>" form (simulated provider)
- HMAC-SHA256: hex digest of the raw body under the shared webhook secret
"""
import hmac
import hashlib
from typing import Callable, Optional

SIGNATURE_PREFIX = "sha256="

SignatureVerifier = Callable[[bytes, Optional[str]], bool]


def compute_signature(raw_body: bytes, secret_key: str) -> str:
    """
    Sign a raw webhook body.

    Returns:
        Header value in "sha256=<hex digest>" form
    """
    digest = hmac.new(
        secret_key.encode('utf-8'),
        raw_body,
        hashlib.sha256
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_structural_signature(raw_body: bytes, signature: Optional[str]) -> bool:
    """Accept any header that looks like a signature; the simulated provider does not sign."""
    return bool(signature) and signature.startswith(SIGNATURE_PREFIX)


def verify_hmac_signature(raw_body: bytes, signature: Optional[str], secret_key: str) -> bool:
    """
    Verify a webhook signature using constant-time comparison.

    The expected digest is always computed and compared, even when the
    header is missing, so response time does not reveal which check failed.
    """
    expected = compute_signature(raw_body, secret_key)
    return hmac.compare_digest(
        expected.encode('utf-8'),
        (signature or "").encode('utf-8')
    )


def hmac_verifier(secret_key: str) -> SignatureVerifier:
    """Bind a secret into a verifier with the structural verifier's signature."""
    def verify(raw_body: bytes, signature: Optional[str]) -> bool:
        return verify_hmac_signature(raw_body, signature, secret_key)
    return verify
