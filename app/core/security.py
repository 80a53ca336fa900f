"""HMAC signing helpers for partner webhooks."""

import hashlib
import hmac


def compute_signature(secret: str, body: bytes) -> str:
    """Hex-encoded HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time check of a hex signature against the raw body.

    A missing signature never verifies.
    """
    if not signature:
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())
