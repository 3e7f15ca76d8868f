"""SQLAlchemy models."""

from app.models.base import Base
from app.models.cart import Cart, CartItem
from app.models.order import DeliveryStatus, Order, OrderItem, PaymentStatus, StatusKind
from app.models.payment import Payment
from app.models.product import Category, Product, ProductVariation
from app.models.shipping_option import ShippingOption
from app.models.store import Store, StoreDomain

__all__ = [
    # Base
    "Base",
    # Tenancy
    "Store",
    "StoreDomain",
    # Catalog
    "Category",
    "Product",
    "ProductVariation",
    # Cart
    "Cart",
    "CartItem",
    # Shipping
    "ShippingOption",
    # Orders & payments
    "Order",
    "OrderItem",
    "PaymentStatus",
    "DeliveryStatus",
    "StatusKind",
    "Payment",
]
