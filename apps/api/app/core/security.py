"""Security utilities for tokens, identifiers and webhook signatures."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime


def generate_session_id() -> str:
    """Generate a unique session ID for anonymous carts."""
    return secrets.token_urlsafe(16)


def generate_order_number() -> str:
    """Generate a human-readable, unguessable order number.

    Format: ``ORD-YYMMDD-XXXXXXXXXXXX`` where the suffix is 48 random bits.
    """
    return f"ORD-{datetime.now(UTC):%y%m%d}-{secrets.token_hex(6).upper()}"


def compute_signature(payload: bytes, secret: str) -> str:
    """Compute a hex HMAC-SHA256 signature."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify HMAC signature for webhooks."""
    return hmac.compare_digest(compute_signature(payload, secret), signature)


def parse_signature_header(header: str) -> dict[str, list[str]]:
    """Parse a ``k=v,k=v`` signature header into a multi-valued mapping."""
    parts: dict[str, list[str]] = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep and key:
            parts.setdefault(key, []).append(value)
    return parts
