"""API v1 router combining all route modules."""

from fastapi import APIRouter

from app.api.v1 import (
    admin_orders,
    cart,
    checkout,
    health,
    orders,
    payments,
    shipping,
)
from app.api.v1.webhooks import payments as payment_webhooks

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Storefront cart (anonymous session or signed-in shopper)
api_router.include_router(
    cart.router,
    prefix="/cart",
    tags=["cart"],
)

# Shipping quotes
api_router.include_router(
    shipping.router,
    prefix="/shipping",
    tags=["shipping"],
)

# Checkout
api_router.include_router(
    checkout.router,
    prefix="/checkout",
    tags=["checkout"],
)

# Public order status lookup
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["orders"],
)

# Payment methods offered by the store
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["payments"],
)

# Store admin order management (requires auth)
api_router.include_router(
    admin_orders.router,
    prefix="/stores/{store_id}/orders",
    tags=["admin-orders"],
)

# Payment gateway webhooks (no auth - verified via signature)
api_router.include_router(
    payment_webhooks.router,
    prefix="/webhooks/payments",
    tags=["webhooks"],
)
