"""Cart request/response schemas."""

from uuid import UUID

from pydantic import Field

from app.schemas.common import BaseSchema, Money


class CartItemAdd(BaseSchema):
    """Add a product (optionally a specific variation) to the cart."""

    product_id: UUID
    variation_id: UUID | None = None
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseSchema):
    """Set the quantity of an existing cart line."""

    quantity: int = Field(..., ge=1)


class CartProductSummary(BaseSchema):
    id: UUID
    name: str
    slug: str
    price: Money
    stock: int


class CartVariationSummary(BaseSchema):
    id: UUID
    name: str
    price: Money | None
    stock: int


class CartItemResponse(BaseSchema):
    """A cart line with its product projection."""

    id: UUID
    product_id: UUID
    variation_id: UUID | None
    quantity: int
    unit_price: Money
    line_total: Money
    product: CartProductSummary
    variation: CartVariationSummary | None = None


class CartSummaryResponse(BaseSchema):
    """Cart contents with totals recomputed from the lines."""

    id: UUID
    items: list[CartItemResponse]
    items_count: int
    subtotal: Money
    total: Money
