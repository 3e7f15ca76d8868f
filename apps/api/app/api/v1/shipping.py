"""Shipping quote endpoint."""

from fastapi import APIRouter, Request

from app.core.deps import CartOwner, CurrentStore, DBSession, RedisClient
from app.core.rate_limit import SHIPPING_QUOTE_LIMIT, limiter
from app.schemas.shipping import ShippingCalculateRequest, ShippingCalculateResponse
from app.services.cart_service import CartService
from app.services.shipping_service import ShippingService

router = APIRouter()


@router.post("/calculate", response_model=ShippingCalculateResponse)
@limiter.limit(SHIPPING_QUOTE_LIMIT)
async def calculate_shipping(
    request: Request,  # noqa: ARG001 - required by slowapi
    data: ShippingCalculateRequest,
    db: DBSession,
    redis: RedisClient,
    store: CurrentStore,
    owner: CartOwner,
) -> ShippingCalculateResponse:
    """Quote fixed-rate and carrier options for the caller's cart.

    Rate limited per IP since carrier quotes call the Correios API.
    """
    carts = CartService(db)
    cart = await carts.find_cart(store.id, session_id=owner.session_id, user_id=owner.user_id)
    items = await carts.load_items(cart) if cart is not None else []

    service = ShippingService(db, redis)
    options = await service.calculate_shipping_options(store, data.zip, items)
    return ShippingCalculateResponse(options=options)
