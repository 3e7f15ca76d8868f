"""Signing helper for simulating Stripe payment webhooks.

Reads a JSON body from stdin and outputs a ``Stripe-Signature`` header value
(``t=<unix ts>,v1=<hex HMAC-SHA256 of "<t>.<body>">``) using
STRIPE_WEBHOOK_SECRET from the environment (or .env file).

Usage:
    cat payload.json | uv run python -m scripts.sign_webhook

    # Full curl example:
    BODY='{"type":"payment_intent.succeeded","data":{"object":{"id":"pi_1","metadata":{"order_number":"ORD-..."}}}}'
    SIG=$(echo -n "$BODY" | uv run python -m scripts.sign_webhook)
    curl -X POST http://localhost:8000/api/v1/webhooks/payments/stripe \\
      -H "Content-Type: application/json" \\
      -H "Stripe-Signature: $SIG" \\
      -d "$BODY"
"""

import sys
import time

from app.core.config import settings
from app.core.security import compute_signature


def sign(body: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for the body."""
    ts = timestamp if timestamp is not None else int(time.time())
    signature = compute_signature(f"{ts}.".encode() + body, secret)
    return f"t={ts},v1={signature}"


def main() -> None:
    secret = settings.stripe_webhook_secret
    if not secret:
        print("ERROR: STRIPE_WEBHOOK_SECRET is not set in .env", file=sys.stderr)
        sys.exit(1)

    body = sys.stdin.buffer.read()
    if not body:
        print("ERROR: No input received on stdin", file=sys.stderr)
        sys.exit(1)

    print(sign(body, secret), end="")


if __name__ == "__main__":
    main()
