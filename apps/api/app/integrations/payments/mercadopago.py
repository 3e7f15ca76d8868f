"""Mercado Pago gateway: Checkout Pro preferences and payment notifications."""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from app.core.config import settings
from app.core.encryption import reveal_secret
from app.core.exceptions import WebhookVerificationError
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

# Payment resource statuses
PAYMENT_STATUS_MAP: dict[str, GatewayStatus] = {
    "approved": GatewayStatus.PAID,
    "authorized": GatewayStatus.AWAITING_PAYMENT,
    "pending": GatewayStatus.AWAITING_PAYMENT,
    "in_process": GatewayStatus.AWAITING_PAYMENT,
    "rejected": GatewayStatus.FAILED,
    "cancelled": GatewayStatus.CANCELLED,
    "refunded": GatewayStatus.CANCELLED,
}

# Notification actions, used when the body carries no payment status
ACTION_STATUS_MAP: dict[str, GatewayStatus] = {
    "payment.created": GatewayStatus.AWAITING_PAYMENT,
    "payment.updated": GatewayStatus.PAID,
}


class MercadoPagoGateway:
    """Mercado Pago Checkout Pro integration."""

    name = "mercadopago"

    def __init__(
        self,
        api_base: str | None = None,
        webhook_secret: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_base = (api_base or settings.mercadopago_api_base).rstrip("/")
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.mercadopago_webhook_secret
        )
        self.timeout = timeout if timeout is not None else settings.payment_gateway_timeout

    async def create_payment(
        self,
        order: "Order",
        store: "Store",
        details: "CheckoutRequest",
    ) -> PaymentIntent:
        """Create a checkout preference and return its ``init_point``."""
        access_token = reveal_secret(store.gateway_config(self.name).get("access_token"))
        if not access_token:
            raise GatewayConfigurationError(
                f"Mercado Pago is not configured for store {store.slug}"
            )

        return_url = f"{settings.storefront_url}/orders/{order.order_number}"
        body: dict[str, Any] = {
            "items": [
                {
                    "title": f"{store.name} - {order.order_number}",
                    "quantity": 1,
                    "unit_price": float(order.total),
                    "currency_id": "BRL",
                }
            ],
            "external_reference": order.order_number,
            "metadata": {"order_number": order.order_number},
            "back_urls": {
                "success": f"{return_url}?payment=success",
                "pending": f"{return_url}?payment=pending",
                "failure": f"{return_url}?payment=failure",
            },
            "auto_return": "approved",
        }
        payer = {"name": details.customer_name}
        if details.customer_email:
            payer["email"] = details.customer_email
        body["payer"] = payer

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}/checkout/preferences",
                json=body,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "X-Idempotency-Key": f"{self.name}:{order.order_number}",
                },
            )
            response.raise_for_status()
            preference = response.json()

        logger.info(
            "Mercado Pago preference %s created for order %s", preference["id"], order.order_number
        )
        return PaymentIntent(
            payment_id=str(preference["id"]),
            status=GatewayStatus.AWAITING_PAYMENT,
            payment_url=preference.get("init_point"),
            metadata={"order_number": order.order_number},
        )

    def process_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Verify ``x-signature`` and map the notification."""
        payload = parse_json_body(raw_body)
        data = payload.get("data") or {}
        payment_id = data.get("id")
        if not payment_id:
            raise WebhookVerificationError("Mercado Pago notification has no data.id")

        if self.webhook_secret:
            self._verify(str(payment_id), headers)

        status_value = data.get("status") or payload.get("status")
        if status_value:
            status = PAYMENT_STATUS_MAP.get(str(status_value), GatewayStatus.PENDING)
        else:
            status = ACTION_STATUS_MAP.get(str(payload.get("action", "")), GatewayStatus.PENDING)

        logger.debug("Mercado Pago notification %s mapped to %s", payment_id, status.value)
        metadata: dict[str, Any] = {"action": payload.get("action")}
        order_number = data.get("external_reference") or payload.get("external_reference")
        if order_number:
            metadata["order_number"] = order_number

        return WebhookEvent(payment_id=str(payment_id), status=status, metadata=metadata)

    def _verify(self, data_id: str, headers: Mapping[str, str]) -> None:
        parts = parse_signature_header(headers.get("x-signature", ""))
        timestamps = parts.get("ts", [])
        signatures = parts.get("v1", [])
        if not timestamps or not signatures:
            raise WebhookVerificationError("Missing Mercado Pago signature")

        request_id = headers.get("x-request-id", "")
        manifest = f"id:{data_id.lower()};request-id:{request_id};ts:{timestamps[0]};"
        if not verify_signature(manifest.encode(), signatures[0], self.webhook_secret):
            raise WebhookVerificationError("Invalid Mercado Pago signature")
