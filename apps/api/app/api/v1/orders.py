"""Public order status endpoint for customers."""

from fastapi import APIRouter, Request

from app.core.deps import CurrentStore, DBSession
from app.core.rate_limit import ORDER_LOOKUP_LIMIT, limiter
from app.schemas.order import OrderStatusResponse
from app.services.order_service import OrderService

router = APIRouter()


@router.get("/{order_number}/status", response_model=OrderStatusResponse)
@limiter.limit(ORDER_LOOKUP_LIMIT)
async def get_order_status(
    request: Request,  # noqa: ARG001 - required by slowapi
    order_number: str,
    db: DBSession,
    store: CurrentStore,
) -> OrderStatusResponse:
    """Look up an order of the current store by its order number.

    Rate limited per IP; the response carries no customer contact details.
    """
    order = await OrderService(db).get_by_order_number(store.id, order_number)
    return OrderStatusResponse.model_validate(order)
