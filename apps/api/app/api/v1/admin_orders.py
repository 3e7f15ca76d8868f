"""Store admin order management (requires auth)."""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.deps import AdminStore, DBSession
from app.schemas.order import (
    DeliveryStatusUpdate,
    OrderListParams,
    OrderListResponse,
    OrderResponse,
    PaymentStatusUpdate,
)
from app.services.events import EventSink, get_event_sink
from app.services.order_service import OrderService

router = APIRouter()


@router.get("", response_model=OrderListResponse)
async def list_orders(
    store: AdminStore,
    db: DBSession,
    params: OrderListParams = Depends(),
) -> OrderListResponse:
    """List the store's orders, newest first."""
    return await OrderService(db).list_orders(
        store.id,
        payment_status=params.payment_status,
        delivery_status=params.delivery_status,
        page=params.page,
        page_size=params.page_size,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    store: AdminStore,
    db: DBSession,
) -> OrderResponse:
    order = await OrderService(db).get_order_for_store(store.id, order_id)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/payment-status", response_model=OrderResponse)
async def update_payment_status(
    order_id: UUID,
    data: PaymentStatusUpdate,
    store: AdminStore,
    db: DBSession,
    events: EventSink = Depends(get_event_sink),
) -> OrderResponse:
    """Move the payment status; invalid transitions are rejected with 422."""
    service = OrderService(db, events)
    order = await service.get_order_for_store(store.id, order_id, lock=True)
    order = await service.update_payment_status(order, data.status)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/delivery-status", response_model=OrderResponse)
async def update_delivery_status(
    order_id: UUID,
    data: DeliveryStatusUpdate,
    store: AdminStore,
    db: DBSession,
    events: EventSink = Depends(get_event_sink),
) -> OrderResponse:
    service = OrderService(db, events)
    order = await service.get_order_for_store(store.id, order_id, lock=True)
    order = await service.update_delivery_status(order, data.status)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/mark-paid", response_model=OrderResponse)
async def mark_order_paid(
    order_id: UUID,
    store: AdminStore,
    db: DBSession,
    events: EventSink = Depends(get_event_sink),
) -> OrderResponse:
    """Confirm a payment settled outside a gateway (e.g. over WhatsApp)."""
    service = OrderService(db, events)
    order = await service.get_order_for_store(store.id, order_id, lock=True)
    order = await service.mark_as_paid(order)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    store: AdminStore,
    db: DBSession,
    events: EventSink = Depends(get_event_sink),
) -> OrderResponse:
    service = OrderService(db, events)
    order = await service.get_order_for_store(store.id, order_id, lock=True)
    order = await service.cancel_order(order)
    return OrderResponse.model_validate(order)
