"""Checkout request/response schemas."""

from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.common import BaseSchema
from app.schemas.order import OrderResponse
from app.schemas.payment import PaymentInitiationResponse


class ShippingAddress(BaseSchema):
    """Structured Brazilian delivery address."""

    street: str = Field(..., min_length=1, max_length=255)
    number: str = Field(..., min_length=1, max_length=20)
    complement: str | None = Field(default=None, max_length=255)
    neighborhood: str | None = Field(default=None, max_length=255)
    city: str = Field(..., min_length=1, max_length=255)
    state: str = Field(..., min_length=2, max_length=2)
    zip: str = Field(..., min_length=8, max_length=9)


class CheckoutRequest(BaseSchema):
    """Customer details submitted at checkout.

    Shipping is chosen either as a fixed-rate ``shipping_option_id`` or a
    carrier ``shipping_service`` code, as returned by the shipping quote.
    """

    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=30)
    shipping_address: ShippingAddress | None = None
    shipping_option_id: UUID | None = None
    shipping_service: str | None = Field(default=None, max_length=20)
    payment_method: str = Field(default="whatsapp", max_length=50)
    notes: str | None = Field(default=None, max_length=2000)

    def address_dict(self) -> dict[str, Any] | None:
        return self.shipping_address.model_dump() if self.shipping_address else None

    @property
    def has_shipping_selection(self) -> bool:
        return self.shipping_option_id is not None or bool(self.shipping_service)


class CheckoutResponse(BaseSchema):
    """Created order plus how the customer proceeds to pay."""

    order: OrderResponse
    payment: PaymentInitiationResponse | None = None
    contact_url: str | None = None
