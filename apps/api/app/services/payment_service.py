"""Payment initiation and gateway webhook application."""

import logging
from typing import TYPE_CHECKING

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PaymentMethodUnavailableError
from app.integrations.payments.base import (
    MANUAL_METHOD,
    GatewayConfigurationError,
    GatewayStatus,
    WebhookEvent,
)
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.models.order import Order, PaymentStatus
from app.models.payment import Payment
from app.models.store import Store
from app.services.events import EventSink
from app.services.order_service import OrderService, can_change_payment

if TYPE_CHECKING:
    from app.schemas.checkout import CheckoutRequest

logger = logging.getLogger(__name__)

# Order transition driven by each gateway status; None means record only
ORDER_STATUS_FOR_GATEWAY: dict[GatewayStatus, PaymentStatus | None] = {
    GatewayStatus.PENDING: None,
    GatewayStatus.AWAITING_PAYMENT: PaymentStatus.AWAITING_PAYMENT,
    GatewayStatus.PAID: PaymentStatus.PAID,
    GatewayStatus.FAILED: None,
    GatewayStatus.CANCELLED: PaymentStatus.CANCELLED,
}


def available_payment_methods(store: Store, gateways: GatewayRegistry) -> list[str]:
    """Gateways the store has enabled, plus direct contact which is always offered."""
    methods = [name for name in gateways.names() if store.is_gateway_enabled(name)]
    methods.append(MANUAL_METHOD)
    return methods


class PaymentService:
    """Creates gateway payments and applies their webhook notifications."""

    def __init__(
        self,
        db: AsyncSession,
        events: EventSink | None = None,
        gateways: GatewayRegistry | None = None,
    ) -> None:
        self.db = db
        self.gateways = gateways or get_gateway_registry()
        self.orders = OrderService(db, events)

    def available_methods(self, store: Store) -> list[str]:
        return available_payment_methods(store, self.gateways)

    async def initiate_payment(
        self,
        order: Order,
        store: Store,
        details: "CheckoutRequest",
    ) -> Payment | None:
        """Start the gateway payment for a freshly created order.

        Returns None for direct-contact orders and when the gateway call
        fails; the order then stays ``pending`` and the store can follow up
        by hand. Repeated calls return the payment already recorded.
        """
        if order.payment_method == MANUAL_METHOD:
            return None

        gateway = self.gateways.get(order.payment_method)
        if gateway is None or not store.is_gateway_enabled(order.payment_method):
            raise PaymentMethodUnavailableError(order.payment_method)

        idempotency_key = f"{gateway.name}:{order.order_number}"
        existing = await self.db.scalar(
            select(Payment).where(Payment.idempotency_key == idempotency_key)
        )
        if existing is not None:
            return existing

        try:
            intent = await gateway.create_payment(order, store, details)
        except (httpx.HTTPError, GatewayConfigurationError, KeyError, ValueError):
            logger.exception(
                "Could not start %s payment for order %s", gateway.name, order.order_number
            )
            return None

        payment = Payment(
            order_id=order.id,
            gateway=gateway.name,
            gateway_payment_id=intent.payment_id,
            gateway_status=intent.status.value,
            amount=order.total,
            currency="BRL",
            payment_url=intent.payment_url,
            idempotency_key=idempotency_key,
            details=dict(intent.metadata),
        )
        self.db.add(payment)
        await self.db.commit()

        target = ORDER_STATUS_FOR_GATEWAY[intent.status]
        if target is not None and can_change_payment(order.payment_status, target):
            await self.orders.update_payment_status(order, target)
        return payment

    async def apply_webhook_event(self, gateway_name: str, event: WebhookEvent) -> str:
        """Record a gateway notification and move the order if allowed.

        Returns one of ``"unknown_payment"``, ``"duplicate"``, ``"applied"``
        or ``"recorded"`` (payment updated, order left as is).
        """
        payment = await self._find_payment(gateway_name, event)
        if payment is None:
            logger.warning(
                "%s webhook for unknown payment %s", gateway_name, event.payment_id
            )
            return "unknown_payment"

        if payment.gateway_status == event.status.value:
            logger.info(
                "Duplicate %s webhook for payment %s (%s), ignoring",
                gateway_name,
                event.payment_id,
                event.status.value,
            )
            return "duplicate"

        payment.gateway_payment_id = event.payment_id
        payment.gateway_status = event.status.value
        payment.details = {**(payment.details or {}), **event.metadata}

        order = await self.db.scalar(
            select(Order).where(Order.id == payment.order_id).with_for_update()
        )
        if order is None:
            await self.db.commit()
            return "recorded"

        target = ORDER_STATUS_FOR_GATEWAY[event.status]
        if target is not None and can_change_payment(order.payment_status, target):
            # Commits the payment changes together with the order
            await self.orders.update_payment_status(order, target)
            return "applied"

        await self.db.commit()
        if target is not None and order.payment_status != target:
            logger.warning(
                "Order %s is %s; %s webhook status %s not applied",
                order.order_number,
                order.payment_status.value,
                gateway_name,
                event.status.value,
            )
        return "recorded"

    async def _find_payment(self, gateway_name: str, event: WebhookEvent) -> Payment | None:
        payment = await self.db.scalar(
            select(Payment)
            .where(
                Payment.gateway == gateway_name,
                Payment.gateway_payment_id == event.payment_id,
            )
            .with_for_update()
        )
        if payment is not None or not event.order_number:
            return payment

        return await self.db.scalar(
            select(Payment)
            .join(Order, Order.id == Payment.order_id)
            .where(
                Payment.gateway == gateway_name,
                Order.order_number == event.order_number,
            )
            .with_for_update()
        )
