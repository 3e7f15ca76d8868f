"""Order and OrderItem models."""

import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.payment import Payment
    from app.models.store import Store


class PaymentStatus(str, enum.Enum):
    """Payment lifecycle of an order."""

    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class DeliveryStatus(str, enum.Enum):
    """Fulfilment lifecycle of an order."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class StatusKind(str, enum.Enum):
    """Which status dimension a history entry refers to."""

    PAYMENT = "payment"
    DELIVERY = "delivery"


class Order(Base):
    """Order placed through checkout.

    Everything except the two status fields and the history log is frozen
    at creation. ``status_history`` is append-only; its last entry of each
    kind mirrors the corresponding status column.
    """

    __tablename__ = "orders"

    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Customer contact
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # Amounts (total = subtotal + shipping_cost)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    shipping_method: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="payment_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            name="delivery_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=DeliveryStatus.PENDING,
        nullable=False,
        index=True,
    )
    status_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    store: Mapped["Store"] = relationship("Store", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )
    payment: Mapped["Payment | None"] = relationship(
        "Payment",
        back_populates="order",
        uselist=False,
    )

    def record_status(self, kind: StatusKind, status: str) -> dict[str, Any]:
        """Append a history entry. The list is reassigned so the change is flushed."""
        entry = {
            "type": kind.value,
            "status": status,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        self.status_history = [*(self.status_history or []), entry]
        return entry

    def __repr__(self) -> str:
        return f"<Order {self.order_number} ({self.payment_status.value}/{self.delivery_status.value})>"


class OrderItem(Base):
    """Line snapshot taken at checkout; survives product rename or deletion."""

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    variation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("product_variations.id", ondelete="SET NULL"),
        nullable=True,
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variation_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem {self.product_name} x{self.quantity}>"
