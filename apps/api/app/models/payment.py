"""Payment model tracking the gateway side of an order."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.order import Order


class Payment(Base):
    """Gateway payment for an order.

    ``gateway_status`` holds the last canonical status received from the
    gateway; a webhook repeating it is treated as a duplicate.
    """

    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_gateway_payment", "gateway", "gateway_payment_id"),
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    gateway: Mapped[str] = mapped_column(String(50), nullable=False)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gateway_status: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="BRL", nullable=False)
    payment_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        default=dict,
        nullable=False,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment {self.gateway}:{self.gateway_payment_id} {self.gateway_status}>"
