"""Shipping quote schemas."""

from typing import Literal
from uuid import UUID

from pydantic import Field

from app.schemas.common import BaseSchema, Money


class ShippingCalculateRequest(BaseSchema):
    """Destination for a shipping quote; the cart supplies the parcel."""

    zip: str = Field(..., min_length=8, max_length=9, description="Destination postal code")


class ShippingQuote(BaseSchema):
    """A priced shipping choice offered to the customer.

    Fixed-rate quotes carry ``id`` (the ShippingOption); carrier quotes
    carry ``service`` (the carrier service code).
    """

    type: Literal["fixed", "carrier"]
    id: UUID | None = None
    service: str | None = None
    name: str
    price: Money
    delivery_days: int | None = None


class ShippingCalculateResponse(BaseSchema):
    options: list[ShippingQuote]
