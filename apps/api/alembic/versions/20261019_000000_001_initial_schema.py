"""Initial storefront schema: stores, catalog, carts, orders and payments.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _base_columns() -> list[sa.Column]:  # type: ignore[type-arg]
    return [
        sa.Column("id", sa.UUID(), nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _store_fk(table: str, ondelete: str = "CASCADE") -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["store_id"],
        ["stores.id"],
        name=op.f(f"fk_{table}_store_id_stores"),
        ondelete=ondelete,
    )


def upgrade() -> None:
    # Create enum types
    op.execute(
        "CREATE TYPE payment_status AS ENUM "
        "('pending', 'awaiting_payment', 'paid', 'cancelled', 'refunded')"
    )
    op.execute(
        "CREATE TYPE delivery_status AS ENUM "
        "('pending', 'processing', 'shipped', 'delivered', 'cancelled')"
    )

    # Stores (tenants)
    op.create_table(
        "stores",
        *_base_columns(),
        sa.Column("organization_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("whatsapp", sa.String(30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("shipping_zip", sa.String(9), nullable=True),
        sa.Column("correios_user", sa.String(255), nullable=True),
        sa.Column("correios_password", sa.String(1024), nullable=True),
        sa.Column("correios_posting_card", sa.String(50), nullable=True),
        sa.Column("payment_config", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_stores")),
        sa.UniqueConstraint("slug", name=op.f("uq_stores_slug")),
    )
    op.create_index(
        op.f("ix_stores_organization_id"), "stores", ["organization_id"], unique=False
    )

    op.create_table(
        "store_domains",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        _store_fk("store_domains"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_store_domains")),
        sa.UniqueConstraint("domain", name=op.f("uq_store_domains_domain")),
    )
    op.create_index(
        op.f("ix_store_domains_store_id"), "store_domains", ["store_id"], unique=False
    )

    # Catalog
    op.create_table(
        "categories",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        _store_fk("categories"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_categories")),
        sa.UniqueConstraint("store_id", "slug", name="uq_categories_store_slug"),
    )
    op.create_index(op.f("ix_categories_store_id"), "categories", ["store_id"], unique=False)

    op.create_table(
        "products",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("category_id", sa.UUID(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("weight", sa.Numeric(10, 2), nullable=True),
        sa.Column("length", sa.Numeric(10, 2), nullable=True),
        sa.Column("width", sa.Numeric(10, 2), nullable=True),
        sa.Column("height", sa.Numeric(10, 2), nullable=True),
        _store_fk("products"),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name=op.f("fk_products_category_id_categories"),
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("stock >= 0", name=op.f("ck_products_stock_non_negative")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_products")),
        sa.UniqueConstraint("store_id", "slug", name="uq_products_store_slug"),
    )
    op.create_index(op.f("ix_products_store_id"), "products", ["store_id"], unique=False)

    op.create_table(
        "product_variations",
        *_base_columns(),
        sa.Column("product_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weight", sa.Numeric(10, 2), nullable=True),
        sa.Column("length", sa.Numeric(10, 2), nullable=True),
        sa.Column("width", sa.Numeric(10, 2), nullable=True),
        sa.Column("height", sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            name=op.f("fk_product_variations_product_id_products"),
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("stock >= 0", name=op.f("ck_product_variations_stock_non_negative")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_product_variations")),
    )
    op.create_index(
        op.f("ix_product_variations_product_id"),
        "product_variations",
        ["product_id"],
        unique=False,
    )

    # Fixed-rate shipping
    op.create_table(
        "shipping_options",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("state", sa.String(2), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("delivery_days", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _store_fk("shipping_options"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_shipping_options")),
    )
    op.create_index(
        op.f("ix_shipping_options_store_id"), "shipping_options", ["store_id"], unique=False
    )

    # Carts
    op.create_table(
        "carts",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("user_id", sa.String(255), nullable=True),
        _store_fk("carts"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_carts")),
        sa.UniqueConstraint("store_id", "session_id", name="uq_carts_store_session"),
        sa.UniqueConstraint("store_id", "user_id", name="uq_carts_store_user"),
    )
    op.create_index(op.f("ix_carts_store_id"), "carts", ["store_id"], unique=False)

    op.create_table(
        "cart_items",
        *_base_columns(),
        sa.Column("cart_id", sa.UUID(), nullable=False),
        sa.Column("product_id", sa.UUID(), nullable=False),
        sa.Column("variation_id", sa.UUID(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(
            ["cart_id"],
            ["carts.id"],
            name=op.f("fk_cart_items_cart_id_carts"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            name=op.f("fk_cart_items_product_id_products"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["variation_id"],
            ["product_variations.id"],
            name=op.f("fk_cart_items_variation_id_product_variations"),
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("quantity >= 1", name=op.f("ck_cart_items_quantity_positive")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_cart_items")),
    )
    op.create_index(op.f("ix_cart_items_cart_id"), "cart_items", ["cart_id"], unique=False)

    # Orders
    op.create_table(
        "orders",
        *_base_columns(),
        sa.Column("store_id", sa.UUID(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(30), nullable=True),
        sa.Column("shipping_address", postgresql.JSONB(), nullable=True),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("shipping_method", sa.String(255), nullable=True),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column(
            "payment_status",
            postgresql.ENUM(
                "pending",
                "awaiting_payment",
                "paid",
                "cancelled",
                "refunded",
                name="payment_status",
                create_type=False,
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "delivery_status",
            postgresql.ENUM(
                "pending",
                "processing",
                "shipped",
                "delivered",
                "cancelled",
                name="delivery_status",
                create_type=False,
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("status_history", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("notes", sa.Text(), nullable=True),
        _store_fk("orders", ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_orders")),
        sa.UniqueConstraint("order_number", name=op.f("uq_orders_order_number")),
    )
    op.create_index(op.f("ix_orders_store_id"), "orders", ["store_id"], unique=False)
    op.create_index(op.f("ix_orders_payment_status"), "orders", ["payment_status"], unique=False)
    op.create_index(
        op.f("ix_orders_delivery_status"), "orders", ["delivery_status"], unique=False
    )

    op.create_table(
        "order_items",
        *_base_columns(),
        sa.Column("order_id", sa.UUID(), nullable=False),
        sa.Column("product_id", sa.UUID(), nullable=True),
        sa.Column("variation_id", sa.UUID(), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("variation_name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["orders.id"],
            name=op.f("fk_order_items_order_id_orders"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.id"],
            name=op.f("fk_order_items_product_id_products"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["variation_id"],
            ["product_variations.id"],
            name=op.f("fk_order_items_variation_id_product_variations"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_order_items")),
    )
    op.create_index(op.f("ix_order_items_order_id"), "order_items", ["order_id"], unique=False)

    # Payments
    op.create_table(
        "payments",
        *_base_columns(),
        sa.Column("order_id", sa.UUID(), nullable=False),
        sa.Column("gateway", sa.String(50), nullable=False),
        sa.Column("gateway_payment_id", sa.String(255), nullable=True),
        sa.Column("gateway_status", sa.String(50), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="BRL"),
        sa.Column("payment_url", sa.String(2048), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["orders.id"],
            name=op.f("fk_payments_order_id_orders"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_payments")),
        sa.UniqueConstraint("order_id", name=op.f("uq_payments_order_id")),
        sa.UniqueConstraint("idempotency_key", name=op.f("uq_payments_idempotency_key")),
    )
    op.create_index(
        "ix_payments_gateway_payment",
        "payments",
        ["gateway", "gateway_payment_id"],
        unique=False,
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("payments")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("cart_items")
    op.drop_table("carts")
    op.drop_table("shipping_options")
    op.drop_table("product_variations")
    op.drop_table("products")
    op.drop_table("categories")
    op.drop_table("store_domains")
    op.drop_table("stores")

    # Drop enum types
    op.execute("DROP TYPE IF EXISTS delivery_status")
    op.execute("DROP TYPE IF EXISTS payment_status")
