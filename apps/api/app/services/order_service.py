"""Order lookup and the payment/delivery status machine."""

import logging
import math
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import InvalidStatusTransitionError, NotFoundError
from app.models.order import DeliveryStatus, Order, PaymentStatus, StatusKind
from app.schemas.order import OrderListResponse, OrderResponse
from app.services.events import (
    CeleryEventSink,
    EventSink,
    OrderStatusChanged,
    PaymentConfirmed,
)

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.AWAITING_PAYMENT, PaymentStatus.PAID, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.AWAITING_PAYMENT: frozenset({PaymentStatus.PAID, PaymentStatus.CANCELLED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

# Delivery moves forward only; cancellation is possible until delivered
DELIVERY_SEQUENCE: tuple[DeliveryStatus, ...] = (
    DeliveryStatus.PENDING,
    DeliveryStatus.PROCESSING,
    DeliveryStatus.SHIPPED,
    DeliveryStatus.DELIVERED,
)
DELIVERY_TERMINAL = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED})


def can_change_payment(current: PaymentStatus, new: PaymentStatus) -> bool:
    return new in PAYMENT_TRANSITIONS[current]


def can_change_delivery(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    if current in DELIVERY_TERMINAL or new == current:
        return False
    if new == DeliveryStatus.CANCELLED:
        return True
    return DELIVERY_SEQUENCE.index(new) > DELIVERY_SEQUENCE.index(current)


class OrderService:
    """Business logic for order lookups and status changes.

    Setting a status the order already has is a no-op: no history entry
    and no events. That makes ``mark_as_paid`` and replayed webhooks safe
    to repeat.
    """

    def __init__(self, db: AsyncSession, events: EventSink | None = None) -> None:
        self.db = db
        self.events = events or CeleryEventSink()

    # ------------------------------------------------------------------
    # Lookups (always scoped to a store)
    # ------------------------------------------------------------------

    async def get_order_for_store(
        self, store_id: UUID, order_id: UUID, *, lock: bool = False
    ) -> Order:
        query = (
            select(Order)
            .where(Order.id == order_id, Order.store_id == store_id)
            .options(selectinload(Order.items))
        )
        if lock:
            query = query.with_for_update()
        order = (await self.db.execute(query)).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def get_by_order_number(self, store_id: UUID, order_number: str) -> Order:
        result = await self.db.execute(
            select(Order)
            .where(Order.order_number == order_number, Order.store_id == store_id)
            .options(selectinload(Order.items))
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(
        self,
        store_id: UUID,
        *,
        payment_status: PaymentStatus | None = None,
        delivery_status: DeliveryStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> OrderListResponse:
        """Newest first, optionally filtered by status."""
        conditions = [Order.store_id == store_id]
        if payment_status is not None:
            conditions.append(Order.payment_status == payment_status)
        if delivery_status is not None:
            conditions.append(Order.delivery_status == delivery_status)

        total = await self.db.scalar(select(func.count(Order.id)).where(*conditions)) or 0
        result = await self.db.execute(
            select(Order)
            .where(*conditions)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        orders = result.scalars().all()

        return OrderListResponse(
            items=[OrderResponse.model_validate(order) for order in orders],
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if total else 0,
        )

    # ------------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------------

    async def update_payment_status(self, order: Order, status: PaymentStatus | str) -> Order:
        """Move the payment status, record history, then publish events.

        ``PaymentConfirmed`` is emitted in addition to ``OrderStatusChanged``
        when the order becomes paid.

        Raises:
            InvalidStatusTransitionError: the machine does not allow the move.
        """
        new_status = PaymentStatus(status)
        previous = order.payment_status
        if previous == new_status:
            logger.info(
                "Order %s payment already %s, nothing to do", order.order_number, new_status.value
            )
            return order
        if not can_change_payment(previous, new_status):
            raise InvalidStatusTransitionError("payment", previous.value, new_status.value)

        order.payment_status = new_status
        order.record_status(StatusKind.PAYMENT, new_status.value)
        await self.db.commit()

        logger.info(
            "Order %s payment %s -> %s", order.order_number, previous.value, new_status.value
        )
        if new_status == PaymentStatus.PAID:
            self.events.emit(PaymentConfirmed.from_order(order))
        self.events.emit(
            OrderStatusChanged.from_order(
                order, StatusKind.PAYMENT.value, previous.value, new_status.value
            )
        )
        return order

    async def mark_as_paid(self, order: Order) -> Order:
        """Idempotent: an already-paid order is returned unchanged."""
        return await self.update_payment_status(order, PaymentStatus.PAID)

    async def update_delivery_status(self, order: Order, status: DeliveryStatus | str) -> Order:
        """Move the delivery status forward (or cancel it) and record history."""
        new_status = DeliveryStatus(status)
        previous = order.delivery_status
        if previous == new_status:
            logger.info(
                "Order %s delivery already %s, nothing to do", order.order_number, new_status.value
            )
            return order
        if not can_change_delivery(previous, new_status):
            raise InvalidStatusTransitionError("delivery", previous.value, new_status.value)

        order.delivery_status = new_status
        order.record_status(StatusKind.DELIVERY, new_status.value)
        await self.db.commit()

        logger.info(
            "Order %s delivery %s -> %s", order.order_number, previous.value, new_status.value
        )
        self.events.emit(
            OrderStatusChanged.from_order(
                order, StatusKind.DELIVERY.value, previous.value, new_status.value
            )
        )
        return order

    async def cancel_order(self, order: Order) -> Order:
        """Cancel whatever can still be cancelled.

        Payment is cancelled while unpaid (a paid order keeps ``paid`` until
        refunded), delivery while not yet delivered. Stock is not restored.
        """
        changes: list[tuple[StatusKind, str, str]] = []

        if can_change_payment(order.payment_status, PaymentStatus.CANCELLED):
            changes.append((StatusKind.PAYMENT, order.payment_status.value, "cancelled"))
            order.payment_status = PaymentStatus.CANCELLED
            order.record_status(StatusKind.PAYMENT, PaymentStatus.CANCELLED.value)

        if can_change_delivery(order.delivery_status, DeliveryStatus.CANCELLED):
            changes.append((StatusKind.DELIVERY, order.delivery_status.value, "cancelled"))
            order.delivery_status = DeliveryStatus.CANCELLED
            order.record_status(StatusKind.DELIVERY, DeliveryStatus.CANCELLED.value)

        if not changes:
            if order.delivery_status == DeliveryStatus.CANCELLED:
                return order
            raise InvalidStatusTransitionError(
                "delivery", order.delivery_status.value, DeliveryStatus.CANCELLED.value
            )

        await self.db.commit()
        logger.info("Order %s cancelled", order.order_number)
        for kind, previous, new in changes:
            self.events.emit(OrderStatusChanged.from_order(order, kind.value, previous, new))
        return order
