"""Pydantic schemas for request/response validation."""

from app.schemas.cart import CartItemAdd, CartItemUpdate, CartSummaryResponse
from app.schemas.checkout import CheckoutRequest, CheckoutResponse, ShippingAddress
from app.schemas.common import HealthResponse, Money, PaginatedResponse
from app.schemas.order import OrderResponse, OrderStatusResponse
from app.schemas.payment import PaymentInitiationResponse, PaymentMethodsResponse
from app.schemas.shipping import ShippingCalculateRequest, ShippingQuote

__all__ = [
    "HealthResponse",
    "Money",
    "PaginatedResponse",
    "CartItemAdd",
    "CartItemUpdate",
    "CartSummaryResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "ShippingAddress",
    "OrderResponse",
    "OrderStatusResponse",
    "PaymentInitiationResponse",
    "PaymentMethodsResponse",
    "ShippingCalculateRequest",
    "ShippingQuote",
]
