"""Order domain events and the sinks that publish them.

Services emit events only after their transaction commits. The default
sink hands each event to a Celery task so notification and activity
handlers never run inside the request.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Protocol

from app.models.order import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    name: ClassVar[str] = "order.event"

    order_id: str
    order_number: str
    store_id: str

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    name: ClassVar[str] = "order.created"

    total: str

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreated":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            store_id=str(order.store_id),
            total=f"{order.total:.2f}",
        )


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    name: ClassVar[str] = "order.status_changed"

    kind: str
    previous_status: str
    status: str

    @classmethod
    def from_order(
        cls, order: Order, kind: str, previous_status: str, status: str
    ) -> "OrderStatusChanged":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            store_id=str(order.store_id),
            kind=kind,
            previous_status=previous_status,
            status=status,
        )


@dataclass(frozen=True)
class PaymentConfirmed(OrderEvent):
    name: ClassVar[str] = "order.payment_confirmed"

    total: str

    @classmethod
    def from_order(cls, order: Order) -> "PaymentConfirmed":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            store_id=str(order.store_id),
            total=f"{order.total:.2f}",
        )


class EventSink(Protocol):
    def emit(self, event: OrderEvent) -> None: ...


class CeleryEventSink:
    """Publishes events to the ``handle_order_event`` worker task.

    The order is already committed when this runs, so a broker outage is
    logged rather than surfaced to the customer.
    """

    def emit(self, event: OrderEvent) -> None:
        from app.workers.tasks.notifications import handle_order_event

        try:
            handle_order_event.delay(event.name, event.to_payload())
        except Exception:
            logger.exception("Failed to dispatch %s for order %s", event.name, event.order_number)


def get_event_sink() -> EventSink:
    """FastAPI dependency returning the default sink."""
    return CeleryEventSink()
