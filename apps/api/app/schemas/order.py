"""Order schemas for the storefront and admin APIs."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.models.order import DeliveryStatus, PaymentStatus
from app.schemas.common import BaseSchema, Money, PaginatedResponse


class OrderItemResponse(BaseSchema):
    id: UUID
    product_id: UUID | None
    variation_id: UUID | None
    product_name: str
    variation_name: str | None
    quantity: int
    unit_price: Money
    total: Money


class StatusHistoryEntry(BaseSchema):
    type: str
    status: str
    timestamp: datetime


class OrderResponse(BaseSchema):
    """Full order as seen by the store admin."""

    id: UUID
    order_number: str
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    shipping_address: dict[str, Any] | None
    subtotal: Money
    shipping_cost: Money
    shipping_method: str | None
    total: Money
    payment_method: str
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    status_history: list[StatusHistoryEntry]
    notes: str | None
    items: list[OrderItemResponse]
    created_at: datetime


class OrderStatusResponse(BaseSchema):
    """Public order status, looked up by order number. No contact details."""

    order_number: str
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    subtotal: Money
    shipping_cost: Money
    shipping_method: str | None
    total: Money
    items: list[OrderItemResponse]
    status_history: list[StatusHistoryEntry]
    created_at: datetime


class PaymentStatusUpdate(BaseSchema):
    status: PaymentStatus


class DeliveryStatusUpdate(BaseSchema):
    status: DeliveryStatus


class OrderListParams(BaseSchema):
    """Filters for the admin order listing."""

    payment_status: PaymentStatus | None = None
    delivery_status: DeliveryStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


OrderListResponse = PaginatedResponse[OrderResponse]
