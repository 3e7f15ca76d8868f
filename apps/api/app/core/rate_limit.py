"""Rate limiting configuration using slowapi.

Only the anonymous storefront endpoints are limited; admin routes sit
behind JWT auth.
"""

from slowapi import Limiter
from starlette.requests import Request

# Public order-number lookups (guessing attempts are throttled per IP)
ORDER_LOOKUP_LIMIT = "30/minute"
# Each shipping quote can fan out to the carrier API
SHIPPING_QUOTE_LIMIT = "20/minute"
CHECKOUT_LIMIT = "10/minute"


def _get_real_client_ip(request: Request) -> str:
    """Extract the real client IP behind Cloudflare Tunnel / reverse proxy."""
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or (request.client.host if request.client else "127.0.0.1")
    )


limiter = Limiter(key_func=_get_real_client_ip)
