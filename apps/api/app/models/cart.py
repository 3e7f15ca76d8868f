"""Cart and CartItem models for pre-order state."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.product import Product, ProductVariation


class Cart(Base):
    """Shopping cart owned by either an anonymous session or a user.

    Exactly one of ``session_id`` / ``user_id`` identifies the cart within
    its store; both pairs are unique per store.
    """

    __tablename__ = "carts"
    __table_args__ = (
        UniqueConstraint("store_id", "session_id", name="uq_carts_store_session"),
        UniqueConstraint("store_id", "user_id", name="uq_carts_store_user"),
    )

    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Better Auth user id (JWT "sub")
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at",
    )

    def __repr__(self) -> str:
        owner = f"user={self.user_id}" if self.user_id else f"session={self.session_id}"
        return f"<Cart {owner}>"


class CartItem(Base):
    """Line in a cart. ``unit_price`` is captured when the item is added."""

    __tablename__ = "cart_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="quantity_positive"),)

    cart_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    variation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("product_variations.id", ondelete="CASCADE"),
        nullable=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
    product: Mapped["Product"] = relationship("Product")
    variation: Mapped["ProductVariation | None"] = relationship("ProductVariation")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def __repr__(self) -> str:
        return f"<CartItem product={self.product_id} qty={self.quantity}>"
