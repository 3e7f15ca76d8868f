"""Seed a demo storefront for local testing.

Creates:
- 1 store (served at demo.<PLATFORM_DOMAIN>) with WhatsApp contact and a
  shipping origin, so carrier estimates work without Correios credentials
- 2 categories and 3 products, one with size variations carrying their own stock
- 3 fixed-rate shipping options (local, state-wide, nationwide pickup)

Usage:
    cd apps/api && uv run python -m scripts.seed_store
"""

import asyncio
import uuid
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import async_session_maker
from app.models.product import Category, Product, ProductVariation
from app.models.shipping_option import ShippingOption
from app.models.store import Store

# Fixed UUIDs for easy reference
STORE_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000001")
ORG_ID = "demo-org-seed"

MUG_ID = uuid.UUID("bbbbbbbb-0000-0000-0000-000000000001")
SHIRT_ID = uuid.UUID("bbbbbbbb-0000-0000-0000-000000000002")
POSTER_ID = uuid.UUID("bbbbbbbb-0000-0000-0000-000000000003")

KITCHEN_ID = uuid.UUID("cccccccc-0000-0000-0000-000000000001")
APPAREL_ID = uuid.UUID("cccccccc-0000-0000-0000-000000000002")


async def seed(session: AsyncSession) -> None:
    # ── Cleanup existing seed data ──────────────────────────────────────
    # Orders restrict store deletion; everything else cascades
    await session.execute(text("DELETE FROM orders WHERE store_id = :s"), {"s": str(STORE_ID)})
    await session.execute(text("DELETE FROM stores WHERE id = :s"), {"s": str(STORE_ID)})
    await session.flush()

    # ── Store ───────────────────────────────────────────────────────────
    store = Store(
        id=STORE_ID,
        organization_id=ORG_ID,
        name="Demo Store",
        slug="demo",
        email="owner@demo.test",
        whatsapp="(11) 98765-4321",
        shipping_zip="01310100",
        payment_config={},
    )
    session.add(store)
    session.add_all(
        [
            Category(id=KITCHEN_ID, store_id=STORE_ID, name="Kitchen", slug="kitchen"),
            Category(id=APPAREL_ID, store_id=STORE_ID, name="Apparel", slug="apparel"),
        ]
    )
    await session.flush()

    # ── Catalog ─────────────────────────────────────────────────────────
    session.add_all(
        [
            Product(
                id=MUG_ID,
                store_id=STORE_ID,
                name="Ceramic Mug",
                slug="ceramic-mug",
                category_id=KITCHEN_ID,
                price=Decimal("39.90"),
                stock=25,
                weight=Decimal("400"),
                length=Decimal("12"),
                width=Decimal("10"),
                height=Decimal("10"),
            ),
            Product(
                id=SHIRT_ID,
                store_id=STORE_ID,
                name="Logo T-Shirt",
                slug="logo-t-shirt",
                category_id=APPAREL_ID,
                price=Decimal("79.90"),
                stock=10,
                weight=Decimal("200"),
                variations=[
                    ProductVariation(name="S", stock=3),
                    ProductVariation(name="M", stock=5),
                    ProductVariation(name="XL", price=Decimal("89.90"), stock=2),
                ],
            ),
            Product(
                id=POSTER_ID,
                store_id=STORE_ID,
                name="Poster A2",
                slug="poster-a2",
                price=Decimal("25.00"),
                stock=50,
            ),
        ]
    )

    # ── Fixed shipping options ──────────────────────────────────────────
    session.add_all(
        [
            ShippingOption(
                store_id=STORE_ID,
                name="Motoboy São Paulo",
                city="São Paulo",
                state="SP",
                price=Decimal("15.00"),
                delivery_days=1,
            ),
            ShippingOption(
                store_id=STORE_ID,
                name="Transportadora SP",
                state="SP",
                price=Decimal("22.50"),
                delivery_days=3,
            ),
            ShippingOption(
                store_id=STORE_ID,
                name="Retirada na loja",
                price=Decimal("0.00"),
            ),
        ]
    )

    await session.commit()


async def main() -> None:
    async with async_session_maker() as session:
        await seed(session)

    print("=" * 60)
    print("  Demo store created successfully!")
    print("=" * 60)
    print()
    print(f"  Store ID:      {STORE_ID}")
    print(f"  Org ID:        {ORG_ID}")
    print(f"  Storefront:    http://demo.{settings.platform_domain}:8000")
    print("  Header:        X-Store-Slug: demo")
    print()
    print(f"  Mug:           {MUG_ID}")
    print(f"  T-Shirt:       {SHIRT_ID} (S/M/XL variations)")
    print(f"  Poster:        {POSTER_ID}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
