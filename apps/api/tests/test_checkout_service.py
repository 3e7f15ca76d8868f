"""Tests for CheckoutService.process_checkout().

Covers:
- Order creation: totals, snapshots, initial status history, cart cleared
- Stock validation against variation or product stock
- Conditional stock decrement and rollback when it loses a race
- Shipping re-resolution and payment method availability
- OrderCreated emitted after commit only
"""

from collections.abc import Callable
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, patch

import fakeredis.aioredis
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CrossStoreReferenceError,
    EmptyCartError,
    InsufficientStockError,
    InvalidShippingSelectionError,
    PaymentMethodUnavailableError,
    ProductUnavailableError,
)
from app.integrations.payments.registry import GatewayRegistry
from app.integrations.viacep.client import PostalAddress
from app.models.cart import CartItem
from app.models.order import DeliveryStatus, Order, PaymentStatus
from app.models.store import Store
from app.schemas.checkout import CheckoutRequest, ShippingAddress
from app.services.checkout_service import CheckoutService
from app.services.events import OrderCreated
from app.services.shipping_service import ShippingService
from tests.conftest import RecordingEventSink

ADDRESS = ShippingAddress(
    street="Av. Paulista",
    number="1000",
    neighborhood="Bela Vista",
    city="São Paulo",
    state="SP",
    zip="01310-100",
)


def _request(**overrides: Any) -> CheckoutRequest:
    data: dict[str, Any] = {
        "customer_name": "Maria Silva",
        "customer_email": "maria@example.com",
        "customer_phone": "11912345678",
        "payment_method": "whatsapp",
    }
    data.update(overrides)
    return CheckoutRequest(**data)


@pytest.fixture
def checkout(
    db_session: AsyncSession,
    fake_redis: fakeredis.aioredis.FakeRedis,
    event_sink: RecordingEventSink,
    gateway_registry: GatewayRegistry,
) -> CheckoutService:
    postal = AsyncMock()
    postal.lookup.return_value = PostalAddress(zip="01310100", city="São Paulo", state="SP")
    shipping = ShippingService(db_session, fake_redis, postal_client=postal)
    return CheckoutService(
        db_session,
        fake_redis,
        events=event_sink,
        shipping=shipping,
        gateways=gateway_registry,
    )


async def _order_count(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(Order)) or 0


async def _cart_line_count(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(CartItem)) or 0


# ---------------------------------------------------------------------------
# Tests: successful checkout
# ---------------------------------------------------------------------------


class TestCheckoutSuccess:
    """Tests for the happy path."""

    async def test_creates_order_with_shipping(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        event_sink: RecordingEventSink,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
        shipping_option_factory: Callable[..., Any],
    ) -> None:
        """2 x 49.90 plus 15.00 shipping."""
        mug = await product_factory(store_id=store.id, name="Ceramic Mug", price="49.90", stock=10)
        option = await shipping_option_factory(store_id=store.id, price="15.00")
        cart = await cart_factory(store_id=store.id, items=[(mug, 2)])

        order = await checkout.process_checkout(
            store, cart, _request(shipping_address=ADDRESS, shipping_option_id=option.id)
        )

        assert order.subtotal == Decimal("99.80")
        assert order.shipping_cost == Decimal("15.00")
        assert order.total == Decimal("114.80")
        assert order.shipping_method == "Local delivery"
        assert order.payment_status == PaymentStatus.PENDING
        assert order.delivery_status == DeliveryStatus.PENDING
        assert order.order_number.startswith("ORD-")
        assert [(e["type"], e["status"]) for e in order.status_history] == [("payment", "pending")]
        assert order.shipping_address is not None
        assert order.shipping_address["city"] == "São Paulo"

        assert len(order.items) == 1
        line = order.items[0]
        assert (line.product_name, line.quantity, line.unit_price, line.total) == (
            "Ceramic Mug",
            2,
            Decimal("49.90"),
            Decimal("99.80"),
        )

        await db_session.refresh(mug)
        assert mug.stock == 8
        assert await _cart_line_count(db_session) == 0

    async def test_order_created_emitted(
        self,
        checkout: CheckoutService,
        event_sink: RecordingEventSink,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        order = await checkout.process_checkout(store, cart, _request())

        created = event_sink.of_type(OrderCreated)
        assert len(created) == 1
        assert created[0].order_number == order.order_number
        assert created[0].total == "49.90"

    async def test_no_shipping_selection_is_free(
        self,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, price="25.00")
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        order = await checkout.process_checkout(store, cart, _request())

        assert order.shipping_cost == Decimal("0.00")
        assert order.shipping_method is None
        assert order.total == Decimal("25.00")

    async def test_variation_stock_decremented(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        variation_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        shirt = await product_factory(store_id=store.id, name="T-Shirt", stock=10)
        medium = await variation_factory(product_id=shirt.id, name="M", stock=3)
        cart = await cart_factory(store_id=store.id, items=[(shirt, 2, medium)])

        order = await checkout.process_checkout(store, cart, _request())

        await db_session.refresh(medium)
        await db_session.refresh(shirt)
        assert medium.stock == 1
        assert shirt.stock == 10
        assert order.items[0].variation_name == "M"

    async def test_untracked_variation_draws_from_product(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        variation_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        shirt = await product_factory(store_id=store.id, stock=10)
        untracked = await variation_factory(product_id=shirt.id, name="L", stock=0)
        cart = await cart_factory(store_id=store.id, items=[(shirt, 4, untracked)])

        await checkout.process_checkout(store, cart, _request())

        await db_session.refresh(shirt)
        assert shirt.stock == 6

    async def test_user_id_recorded(
        self,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)
        cart = await cart_factory(store_id=store.id, session_id=None, user_id="user-1", items=[(product, 1)])

        order = await checkout.process_checkout(store, cart, _request(), user_id="user-1")

        assert order.user_id == "user-1"


# ---------------------------------------------------------------------------
# Tests: stock failures
# ---------------------------------------------------------------------------


class TestCheckoutStock:
    """Tests for stock validation and the conditional decrement."""

    async def test_variation_stock_governs(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        event_sink: RecordingEventSink,
        store: Store,
        product_factory: Callable[..., Any],
        variation_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        """Product has 10, variation has 3: asking for 5 fails on the variation."""
        shirt = await product_factory(store_id=store.id, name="T-Shirt", stock=10)
        medium = await variation_factory(product_id=shirt.id, name="M", stock=3)
        cart = await cart_factory(store_id=store.id, items=[(shirt, 5, medium)])

        with pytest.raises(InsufficientStockError, match="Available: 3") as exc_info:
            await checkout.process_checkout(store, cart, _request())

        assert exc_info.value.available == 3
        assert exc_info.value.variation_name == "M"
        assert await _order_count(db_session) == 0
        assert await _cart_line_count(db_session) == 1
        assert event_sink.events == []

    async def test_second_checkout_cannot_oversell(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, stock=1)
        first = await cart_factory(store_id=store.id, session_id="first", items=[(product, 1)])
        second = await cart_factory(store_id=store.id, session_id="second", items=[(product, 1)])

        await checkout.process_checkout(store, first, _request())
        with pytest.raises(InsufficientStockError, match="Available: 0"):
            await checkout.process_checkout(store, second, _request())

        await db_session.refresh(product)
        assert product.stock == 0
        assert await _order_count(db_session) == 1

    async def test_lost_race_rolls_back(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        event_sink: RecordingEventSink,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        """Pre-check passes on stale data; the conditional UPDATE refuses."""
        plenty = await product_factory(store_id=store.id, name="Plenty", stock=50)
        scarce = await product_factory(store_id=store.id, name="Scarce", stock=1)
        cart = await cart_factory(store_id=store.id, items=[(plenty, 3), (scarce, 2)])

        with (
            patch("app.services.checkout_service.available_stock", return_value=100),
            pytest.raises(InsufficientStockError, match="Scarce"),
        ):
            await checkout.process_checkout(store, cart, _request())

        await db_session.refresh(plenty)
        await db_session.refresh(scarce)
        assert plenty.stock == 50
        assert scarce.stock == 1
        assert await _order_count(db_session) == 0
        assert await _cart_line_count(db_session) == 2
        assert event_sink.events == []

    async def test_inactive_product_rejected(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, is_active=False)
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        with pytest.raises(ProductUnavailableError):
            await checkout.process_checkout(store, cart, _request())

        assert await _order_count(db_session) == 0


# ---------------------------------------------------------------------------
# Tests: request validation
# ---------------------------------------------------------------------------


class TestCheckoutValidation:
    """Tests for cart, shipping and payment method checks."""

    async def test_empty_cart(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        cart_factory: Callable[..., Any],
    ) -> None:
        cart = await cart_factory(store_id=store.id)

        with pytest.raises(EmptyCartError):
            await checkout.process_checkout(store, cart, _request())

        assert await _order_count(db_session) == 0

    async def test_cart_of_another_store(
        self,
        checkout: CheckoutService,
        store: Store,
        other_store: Store,
        cart_factory: Callable[..., Any],
    ) -> None:
        cart = await cart_factory(store_id=other_store.id)

        with pytest.raises(CrossStoreReferenceError):
            await checkout.process_checkout(store, cart, _request())

    async def test_shipping_option_of_another_store(
        self,
        db_session: AsyncSession,
        checkout: CheckoutService,
        store: Store,
        other_store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
        shipping_option_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id, stock=5)
        foreign = await shipping_option_factory(store_id=other_store.id)
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        with pytest.raises(InvalidShippingSelectionError):
            await checkout.process_checkout(
                store, cart, _request(shipping_address=ADDRESS, shipping_option_id=foreign.id)
            )

        await db_session.refresh(product)
        assert product.stock == 5
        assert await _order_count(db_session) == 0

    async def test_shipping_selection_without_address_is_free(
        self,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
        shipping_option_factory: Callable[..., Any],
    ) -> None:
        """A selection with no destination is dropped, not priced."""
        product = await product_factory(store_id=store.id, price="25.00")
        option = await shipping_option_factory(store_id=store.id, price="15.00")
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        order = await checkout.process_checkout(store, cart, _request(shipping_option_id=option.id))

        assert order.shipping_cost == Decimal("0.00")
        assert order.shipping_method is None
        assert order.total == Decimal("25.00")

    async def test_payment_method_not_enabled(
        self,
        checkout: CheckoutService,
        store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=store.id)
        cart = await cart_factory(store_id=store.id, items=[(product, 1)])

        with pytest.raises(PaymentMethodUnavailableError, match="stripe"):
            await checkout.process_checkout(store, cart, _request(payment_method="stripe"))

    async def test_enabled_gateway_accepted(
        self,
        checkout: CheckoutService,
        stripe_store: Store,
        product_factory: Callable[..., Any],
        cart_factory: Callable[..., Any],
    ) -> None:
        product = await product_factory(store_id=stripe_store.id)
        cart = await cart_factory(store_id=stripe_store.id, items=[(product, 1)])

        order = await checkout.process_checkout(
            stripe_store, cart, _request(payment_method="stripe")
        )

        assert order.payment_method == "stripe"
        assert order.payment_status == PaymentStatus.PENDING
