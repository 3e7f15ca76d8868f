"""Celery task consuming order events: store notification and activity log."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.core.database import async_session_maker
from app.models.order import Order
from app.services.events import OrderCreated, OrderStatusChanged, PaymentConfirmed
from app.services.notification_service import order_contact_link
from app.workers.celery_app import BaseTask, celery_app, run_async

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.notifications.handle_order_event",
    base=BaseTask,
    bind=True,
)
def handle_order_event(
    self: BaseTask,  # noqa: ARG001
    event_name: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """Dispatch an emitted order event to its handler."""
    return run_async(_handle_order_event_async(event_name, payload))


async def _handle_order_event_async(event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
    if event_name == OrderCreated.name:
        return await _notify_order_created(payload)
    if event_name in (OrderStatusChanged.name, PaymentConfirmed.name):
        return _log_order_activity(event_name, payload)

    logger.warning("Unknown order event %s", event_name)
    return {"status": "ignored", "reason": "unknown event"}


async def _notify_order_created(payload: dict[str, Any]) -> dict[str, Any]:
    """Build the WhatsApp notification for the store owner."""
    async with async_session_maker() as session:
        order = await session.scalar(
            select(Order)
            .where(Order.id == UUID(payload["order_id"]))
            .options(selectinload(Order.items), selectinload(Order.store))
        )
        if order is None:
            logger.warning("Order %s not found for notification", payload.get("order_number"))
            return {"status": "ignored", "reason": "order not found"}

        link = order_contact_link(order.store, order)

    if link is None:
        logger.info("Store has no WhatsApp number; order %s not notified", order.order_number)
        return {"status": "skipped", "order_number": order.order_number}

    logger.info("WhatsApp notification ready for order %s: %s", order.order_number, link)
    return {"status": "notified", "order_number": order.order_number, "link": link}


def _log_order_activity(event_name: str, payload: dict[str, Any]) -> dict[str, Any]:
    logger.info(
        "Order activity %s",
        event_name,
        extra={
            "order_number": payload.get("order_number"),
            "store_id": payload.get("store_id"),
            "kind": payload.get("kind"),
            "previous_status": payload.get("previous_status"),
            "status": payload.get("status"),
        },
    )
    return {"status": "logged", "event": event_name}
