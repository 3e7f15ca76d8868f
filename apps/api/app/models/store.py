"""Store model for multi-tenant store management."""

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.order import Order
    from app.models.product import Product
    from app.models.shipping_option import ShippingOption


class Store(Base):
    """Store model representing a single tenant.

    Each organization (from Better Auth) can own multiple stores.
    Products, carts, shipping options and orders are all scoped to a store.
    """

    __tablename__ = "stores"

    # Link to Better Auth's organization
    organization_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(30), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Origin postal code for carrier quotes (8 digits, no mask)
    shipping_zip: Mapped[str | None] = mapped_column(String(9), nullable=True)

    # Correios contract credentials; password is Fernet-encrypted
    correios_user: Mapped[str | None] = mapped_column(String(255), nullable=True)
    correios_password: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    correios_posting_card: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Per-gateway settings, e.g. {"stripe": {"enabled": true, "secret_key": "<encrypted>"}}
    payment_config: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
    )

    # Relationships
    domains: Mapped[list["StoreDomain"]] = relationship(
        "StoreDomain",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    shipping_options: Mapped[list["ShippingOption"]] = relationship(
        "ShippingOption",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="store",
    )

    def gateway_config(self, gateway: str) -> dict[str, Any]:
        """Return the stored settings for a payment gateway (empty if none)."""
        config = (self.payment_config or {}).get(gateway)
        return config if isinstance(config, dict) else {}

    def is_gateway_enabled(self, gateway: str) -> bool:
        return bool(self.gateway_config(gateway).get("enabled"))

    def __repr__(self) -> str:
        return f"<Store {self.slug}>"


class StoreDomain(Base):
    """Custom domain pointing at a store's storefront."""

    __tablename__ = "store_domains"

    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    store: Mapped["Store"] = relationship("Store", back_populates="domains")

    def __repr__(self) -> str:
        return f"<StoreDomain {self.domain}>"
