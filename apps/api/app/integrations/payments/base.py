"""Shared contract for payment gateway integrations."""

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from app.core.exceptions import WebhookVerificationError

if TYPE_CHECKING:
    from app.models.order import Order
    from app.models.store import Store
    from app.schemas.checkout import CheckoutRequest

# Direct-contact payment: the customer settles with the store over WhatsApp.
# Always offered, never backed by a gateway.
MANUAL_METHOD = "whatsapp"


class GatewayStatus(str, enum.Enum):
    """Canonical payment status every gateway maps its events to."""

    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GatewayConfigurationError(Exception):
    """The store has not configured the credentials this gateway needs."""


@dataclass(frozen=True)
class PaymentIntent:
    """What a gateway returns after creating a payment."""

    payment_id: str
    status: GatewayStatus
    payment_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """A gateway notification reduced to the canonical vocabulary."""

    payment_id: str
    status: GatewayStatus
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def order_number(self) -> str | None:
        value = self.metadata.get("order_number")
        return str(value) if value else None

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form handed to the background worker."""
        return {
            "payment_id": self.payment_id,
            "status": self.status.value,
            "metadata": self.metadata,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "WebhookEvent":
        return cls(
            payment_id=str(payload["payment_id"]),
            status=GatewayStatus(payload["status"]),
            metadata=dict(payload.get("metadata") or {}),
        )


class PaymentGateway(Protocol):
    """Capability contract implemented by each gateway."""

    name: str

    async def create_payment(
        self,
        order: "Order",
        store: "Store",
        details: "CheckoutRequest",
    ) -> PaymentIntent: ...

    def process_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent: ...


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Decode a webhook body, rejecting anything that is not a JSON object."""
    try:
        data = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise WebhookVerificationError("Webhook body is not valid JSON") from e
    if not isinstance(data, dict):
        raise WebhookVerificationError("Webhook body must be a JSON object")
    return data
