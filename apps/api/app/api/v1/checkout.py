"""Checkout endpoint: cart to order, then payment initiation."""

from fastapi import APIRouter, Depends, Request, status

from app.core.deps import CartOwner, CurrentStore, DBSession, RedisClient
from app.core.exceptions import EmptyCartError
from app.core.rate_limit import CHECKOUT_LIMIT, limiter
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.schemas.checkout import CheckoutRequest, CheckoutResponse
from app.schemas.order import OrderResponse
from app.schemas.payment import PaymentInitiationResponse
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.events import EventSink, get_event_sink
from app.services.notification_service import order_contact_link
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CHECKOUT_LIMIT)
async def checkout(
    request: Request,  # noqa: ARG001 - required by slowapi
    data: CheckoutRequest,
    db: DBSession,
    redis: RedisClient,
    store: CurrentStore,
    owner: CartOwner,
    events: EventSink = Depends(get_event_sink),
    gateways: GatewayRegistry = Depends(get_gateway_registry),
) -> CheckoutResponse:
    """Place an order from the caller's cart.

    The order is committed before the gateway is contacted; a gateway
    failure leaves a ``pending`` order the store can settle by hand.
    """
    cart = await CartService(db).find_cart(
        store.id, session_id=owner.session_id, user_id=owner.user_id
    )
    if cart is None:
        raise EmptyCartError()

    checkout_service = CheckoutService(db, redis, events=events, gateways=gateways)
    order = await checkout_service.process_checkout(store, cart, data, user_id=owner.user_id)

    payment = await PaymentService(db, events=events, gateways=gateways).initiate_payment(
        order, store, data
    )

    return CheckoutResponse(
        order=OrderResponse.model_validate(order),
        payment=PaymentInitiationResponse.model_validate(payment) if payment else None,
        contact_url=order_contact_link(store, order),
    )
