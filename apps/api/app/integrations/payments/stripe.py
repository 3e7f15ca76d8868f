"""Stripe gateway: hosted Checkout Sessions plus signed event webhooks."""

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from app.core.config import settings
from app.core.encryption import reveal_secret
from app.core.exceptions import WebhookVerificationError
from app.core.money import to_cents
from app.core.security import parse_signature_header, verify_signature
from app.integrations.payments.base import (
    GatewayConfigurationError,
    GatewayStatus,
    PaymentIntent,
    WebhookEvent,
    parse_json_body,
)

if TYPE_CHECKING:
    from app.models.order import Order
    from app.models.store import Store
    from app.schemas.checkout import CheckoutRequest

logger = logging.getLogger(__name__)

EVENT_STATUS_MAP: dict[str, GatewayStatus] = {
    "payment_intent.succeeded": GatewayStatus.PAID,
    "payment_intent.payment_failed": GatewayStatus.FAILED,
    "payment_intent.canceled": GatewayStatus.CANCELLED,
    "payment_intent.processing": GatewayStatus.AWAITING_PAYMENT,
    "payment_intent.requires_action": GatewayStatus.AWAITING_PAYMENT,
    "checkout.session.expired": GatewayStatus.CANCELLED,
    "checkout.session.async_payment_failed": GatewayStatus.FAILED,
    "checkout.session.async_payment_succeeded": GatewayStatus.PAID,
}


class StripeGateway:
    """Stripe Checkout integration."""

    name = "stripe"

    def __init__(
        self,
        api_base: str | None = None,
        webhook_secret: str | None = None,
        tolerance: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        )
        self.tolerance = tolerance if tolerance is not None else settings.stripe_webhook_tolerance
        self.timeout = timeout if timeout is not None else settings.payment_gateway_timeout

    async def create_payment(
        self,
        order: "Order",
        store: "Store",
        details: "CheckoutRequest",
    ) -> PaymentIntent:
        """Open a hosted Checkout Session for the order total."""
        secret_key = reveal_secret(store.gateway_config(self.name).get("secret_key"))
        if not secret_key:
            raise GatewayConfigurationError(f"Stripe is not configured for store {store.slug}")

        return_url = f"{settings.storefront_url}/orders/{order.order_number}"
        form: dict[str, Any] = {
            "mode": "payment",
            "success_url": f"{return_url}?payment=success",
            "cancel_url": f"{return_url}?payment=cancelled",
            "client_reference_id": order.order_number,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "brl",
            "line_items[0][price_data][unit_amount]": str(to_cents(order.total)),
            "line_items[0][price_data][product_data][name]": f"{store.name} - {order.order_number}",
            "metadata[order_number]": order.order_number,
            "payment_intent_data[metadata][order_number]": order.order_number,
        }
        if details.customer_email:
            form["customer_email"] = details.customer_email

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}/v1/checkout/sessions",
                data=form,
                headers={
                    "Authorization": f"Bearer {secret_key}",
                    "Idempotency-Key": f"{self.name}:{order.order_number}",
                },
            )
            response.raise_for_status()
            session = response.json()

        logger.info("Stripe session %s created for order %s", session["id"], order.order_number)
        return PaymentIntent(
            payment_id=session["id"],
            status=GatewayStatus.AWAITING_PAYMENT,
            payment_url=session.get("url"),
            metadata={"order_number": order.order_number},
        )

    def process_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Verify the ``Stripe-Signature`` header and map the event."""
        if self.webhook_secret:
            self._verify(raw_body, headers.get("stripe-signature", ""))

        event = parse_json_body(raw_body)
        event_type = str(event.get("type", ""))
        obj = (event.get("data") or {}).get("object") or {}
        payment_id = obj.get("id")
        if not payment_id:
            raise WebhookVerificationError("Stripe event has no object id")

        status = EVENT_STATUS_MAP.get(event_type, GatewayStatus.PENDING)
        if event_type == "checkout.session.completed":
            paid = obj.get("payment_status") == "paid"
            status = GatewayStatus.PAID if paid else GatewayStatus.AWAITING_PAYMENT
        elif event_type not in EVENT_STATUS_MAP:
            logger.info("Unmapped Stripe event type %s, recording as pending", event_type)

        metadata: dict[str, Any] = {"event_id": event.get("id"), "event_type": event_type}
        order_number = (obj.get("metadata") or {}).get("order_number") or obj.get(
            "client_reference_id"
        )
        if order_number:
            metadata["order_number"] = order_number

        return WebhookEvent(payment_id=str(payment_id), status=status, metadata=metadata)

    def _verify(self, raw_body: bytes, header: str) -> None:
        parts = parse_signature_header(header)
        timestamps = parts.get("t", [])
        signatures = parts.get("v1", [])
        if not timestamps or not signatures:
            raise WebhookVerificationError("Missing Stripe signature")

        try:
            timestamp = int(timestamps[0])
        except ValueError as e:
            raise WebhookVerificationError("Malformed Stripe signature timestamp") from e
        if abs(time.time() - timestamp) > self.tolerance:
            raise WebhookVerificationError("Stripe signature timestamp outside tolerance")

        signed_payload = f"{timestamp}.".encode() + raw_body
        if not any(verify_signature(signed_payload, sig, self.webhook_secret) for sig in signatures):
            raise WebhookVerificationError("Invalid Stripe signature")
