"""Pytest configuration and fixtures for the Storefront API test suite.

Provides:
- Per-test SQLite database (aiosqlite) created from the model metadata
- Mock authentication (JWT bypass)
- Mock Redis (fakeredis)
- Disabled rate limiting
- Recording event sink and patched Celery tasks
- Model factory fixtures for Store, Product, ProductVariation, Cart,
  ShippingOption, Order and Payment
"""

import time
from collections.abc import AsyncGenerator, Callable, Generator
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.auth import get_current_user, get_optional_user
from app.core.database import get_async_session
from app.core.deps import get_db, get_redis
from app.core.encryption import encrypt_secret
from app.core.rate_limit import limiter
from app.core.security import compute_signature, generate_order_number
from app.integrations.payments.mercadopago import MercadoPagoGateway
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.integrations.payments.stripe import StripeGateway
from app.main import app
from app.models.base import Base
from app.models.cart import Cart, CartItem
from app.models.order import DeliveryStatus, Order, OrderItem, PaymentStatus, StatusKind
from app.models.payment import Payment
from app.models.product import Product, ProductVariation
from app.models.shipping_option import ShippingOption
from app.models.store import Store, StoreDomain
from app.services.events import OrderEvent, get_event_sink

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "test-user-id"
TEST_USER_EMAIL = "test@example.com"
TEST_ORG_ID = "test-org-id"
OTHER_ORG_ID = "other-org-id"

STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
MERCADOPAGO_WEBHOOK_SECRET = "mp_test_secret"


def stripe_signature(
    body: bytes, secret: str = STRIPE_WEBHOOK_SECRET, timestamp: int | None = None
) -> str:
    """Build a ``Stripe-Signature`` header value for ``body``."""
    ts = timestamp if timestamp is not None else int(time.time())
    return f"t={ts},v1={compute_signature(f'{ts}.'.encode() + body, secret)}"


def mercadopago_headers(
    data_id: str, request_id: str = "req-1", secret: str = MERCADOPAGO_WEBHOOK_SECRET
) -> dict[str, str]:
    """Build Mercado Pago ``x-signature``/``x-request-id`` headers."""
    ts = str(int(time.time()))
    manifest = f"id:{data_id.lower()};request-id:{request_id};ts:{ts};"
    return {
        "x-signature": f"ts={ts},v1={compute_signature(manifest.encode(), secret)}",
        "x-request-id": request_id,
    }


# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# Recording event sink
# ---------------------------------------------------------------------------


class RecordingEventSink:
    """Collects emitted events in memory instead of enqueueing them."""

    def __init__(self) -> None:
        self.events: list[OrderEvent] = []

    def emit(self, event: OrderEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of_type[E: OrderEvent](self, event_type: type[E]) -> list[E]:
        return [e for e in self.events if isinstance(e, event_type)]


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh SQLite database file with all tables for each test.

    A file (not :memory:) so the API's sessions and the test's session see
    the same data. SQLite's own transaction handling is disabled so that
    SAVEPOINTs behave; WAL lets readers and a writer coexist.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for test setup (factory fixtures) and service tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_async_session_maker(
    session_factory: async_sessionmaker[AsyncSession],
) -> Generator[None, None, None]:
    """Point the worker tasks' own sessions at the test database."""
    with (
        patch("app.workers.tasks.payments.async_session_maker", session_factory),
        patch("app.workers.tasks.notifications.async_session_maker", session_factory),
    ):
        yield


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# ---------------------------------------------------------------------------
# Events and Celery
# ---------------------------------------------------------------------------


@pytest.fixture
def event_sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture(autouse=True)
def mock_order_event_task() -> Generator[MagicMock, None, None]:
    """Never enqueue order events on a real broker."""
    with patch("app.workers.tasks.notifications.handle_order_event") as mock_task:
        mock_task.delay = MagicMock()
        yield mock_task


@pytest.fixture
def mock_payment_webhook_task() -> Generator[MagicMock, None, None]:
    """Mock the webhook task where the route imported it."""
    with patch("app.api.v1.webhooks.payments.process_payment_webhook") as mock_task:
        mock_task.delay = MagicMock()
        yield mock_task


# ---------------------------------------------------------------------------
# Payment gateways
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway_registry() -> GatewayRegistry:
    """Registry whose gateways verify webhooks with known test secrets."""
    return GatewayRegistry(
        [
            StripeGateway(api_base="https://stripe.test", webhook_secret=STRIPE_WEBHOOK_SECRET),
            MercadoPagoGateway(
                api_base="https://mercadopago.test", webhook_secret=MERCADOPAGO_WEBHOOK_SECRET
            ),
        ]
    )


# ---------------------------------------------------------------------------
# Auth mock
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default authenticated test user payload (mimics decoded JWT)."""
    return {
        "sub": TEST_USER_ID,
        "email": TEST_USER_EMAIL,
        "activeOrganizationId": TEST_ORG_ID,
    }


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _override_infrastructure(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    event_sink: RecordingEventSink,
    gateway_registry: GatewayRegistry,
) -> None:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_event_sink] = lambda: event_sink
    app.dependency_overrides[get_gateway_registry] = lambda: gateway_registry


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    event_sink: RecordingEventSink,
    gateway_registry: GatewayRegistry,
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated async test client with all dependencies overridden."""
    _override_infrastructure(session_factory, fake_redis, event_sink, gateway_registry)

    async def _override_user() -> dict[str, Any]:
        return auth_user

    async def _override_optional_user() -> dict[str, Any] | None:
        return auth_user

    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_optional_user] = _override_optional_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthed_client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    event_sink: RecordingEventSink,
    gateway_registry: GatewayRegistry,
) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous shopper client. Auth is NOT overridden."""
    _override_infrastructure(session_factory, fake_redis, event_sink, gateway_registry)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def store_headers(store: Store, **extra: str) -> dict[str, str]:
    """Headers that select ``store`` as the request's tenant."""
    return {"X-Store-Id": str(store.id), **extra}


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def store_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Store instances in the test database."""
    counter = {"n": 0}

    async def _create(
        *,
        name: str = "Test Store",
        slug: str | None = None,
        organization_id: str = TEST_ORG_ID,
        is_active: bool = True,
        whatsapp: str | None = "11987654321",
        shipping_zip: str | None = None,
        payment_config: dict[str, Any] | None = None,
        domains: list[str] | None = None,
    ) -> Store:
        counter["n"] += 1
        store = Store(
            organization_id=organization_id,
            name=name,
            slug=slug or f"store-{counter['n']}",
            email="store@example.com",
            whatsapp=whatsapp,
            is_active=is_active,
            shipping_zip=shipping_zip,
            payment_config=payment_config or {},
            domains=[StoreDomain(domain=d) for d in domains or []],
        )
        db_session.add(store)
        await db_session.commit()
        return store

    return _create


@pytest.fixture
def product_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Product instances."""
    counter = {"n": 0}

    async def _create(
        *,
        store_id: UUID,
        name: str = "Test Product",
        price: str | Decimal = "49.90",
        stock: int = 10,
        is_active: bool = True,
        weight: str | None = None,
        length: str | None = None,
        width: str | None = None,
        height: str | None = None,
    ) -> Product:
        counter["n"] += 1
        product = Product(
            store_id=store_id,
            name=name,
            slug=f"product-{counter['n']}",
            price=Decimal(price),
            stock=stock,
            is_active=is_active,
            weight=Decimal(weight) if weight else None,
            length=Decimal(length) if length else None,
            width=Decimal(width) if width else None,
            height=Decimal(height) if height else None,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return _create


@pytest.fixture
def variation_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates ProductVariation instances."""

    async def _create(
        *,
        product_id: UUID,
        name: str = "M",
        price: str | None = None,
        stock: int = 0,
        weight: str | None = None,
    ) -> ProductVariation:
        variation = ProductVariation(
            product_id=product_id,
            name=name,
            price=Decimal(price) if price else None,
            stock=stock,
            weight=Decimal(weight) if weight else None,
        )
        db_session.add(variation)
        await db_session.commit()
        return variation

    return _create


@pytest.fixture
def cart_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates a Cart, optionally with lines.

    ``items`` is a list of ``(product, quantity)`` or
    ``(product, quantity, variation)`` tuples; unit prices are taken the
    same way the cart service snapshots them.
    """

    async def _create(
        *,
        store_id: UUID,
        session_id: str | None = "test-session",
        user_id: str | None = None,
        items: list[tuple[Any, ...]] | None = None,
    ) -> Cart:
        cart = Cart(store_id=store_id, session_id=session_id, user_id=user_id)
        db_session.add(cart)
        await db_session.flush()

        for entry in items or []:
            product, quantity = entry[0], entry[1]
            variation = entry[2] if len(entry) > 2 else None
            unit_price = (
                variation.price
                if variation is not None and variation.price is not None
                else product.price
            )
            db_session.add(
                CartItem(
                    cart_id=cart.id,
                    product_id=product.id,
                    variation_id=variation.id if variation is not None else None,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
        await db_session.commit()
        return cart

    return _create


@pytest.fixture
def shipping_option_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates fixed-rate ShippingOption instances."""

    async def _create(
        *,
        store_id: UUID,
        name: str = "Local delivery",
        price: str = "15.00",
        city: str | None = None,
        state: str | None = None,
        delivery_days: int | None = 2,
        is_active: bool = True,
    ) -> ShippingOption:
        option = ShippingOption(
            store_id=store_id,
            name=name,
            price=Decimal(price),
            city=city,
            state=state,
            delivery_days=delivery_days,
            is_active=is_active,
        )
        db_session.add(option)
        await db_session.commit()
        return option

    return _create


@pytest.fixture
def order_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates an Order with one line, bypassing checkout."""

    async def _create(
        *,
        store_id: UUID,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        delivery_status: DeliveryStatus = DeliveryStatus.PENDING,
        payment_method: str = "whatsapp",
        subtotal: str = "99.80",
        shipping_cost: str = "15.00",
        order_number: str | None = None,
    ) -> Order:
        order = Order(
            store_id=store_id,
            order_number=order_number or generate_order_number(),
            customer_name="Maria Silva",
            customer_email="maria@example.com",
            customer_phone="11912345678",
            shipping_address={
                "street": "Av. Paulista",
                "number": "1000",
                "complement": None,
                "neighborhood": "Bela Vista",
                "city": "São Paulo",
                "state": "SP",
                "zip": "01310100",
            },
            subtotal=Decimal(subtotal),
            shipping_cost=Decimal(shipping_cost),
            shipping_method="Local delivery",
            total=Decimal(subtotal) + Decimal(shipping_cost),
            payment_method=payment_method,
            payment_status=payment_status,
            delivery_status=delivery_status,
            status_history=[],
        )
        order.record_status(StatusKind.PAYMENT, PaymentStatus.PENDING.value)
        if payment_status != PaymentStatus.PENDING:
            order.record_status(StatusKind.PAYMENT, payment_status.value)
        if delivery_status != DeliveryStatus.PENDING:
            order.record_status(StatusKind.DELIVERY, delivery_status.value)
        order.items = [
            OrderItem(
                product_name="Ceramic Mug",
                quantity=2,
                unit_price=Decimal("49.90"),
                total=Decimal(subtotal),
            )
        ]
        db_session.add(order)
        await db_session.commit()
        return order

    return _create


@pytest.fixture
def payment_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that records a gateway Payment for an order."""

    async def _create(
        *,
        order: Order,
        gateway: str = "stripe",
        gateway_payment_id: str | None = "cs_test_123",
        gateway_status: str = "awaiting_payment",
    ) -> Payment:
        payment = Payment(
            order_id=order.id,
            gateway=gateway,
            gateway_payment_id=gateway_payment_id,
            gateway_status=gateway_status,
            amount=order.total,
            currency="BRL",
            idempotency_key=f"{gateway}:{order.order_number}",
            details={"order_number": order.order_number},
        )
        db_session.add(payment)
        await db_session.commit()
        return payment

    return _create


# ---------------------------------------------------------------------------
# Convenience fixtures (pre-built models)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def store(store_factory: Callable[..., Any]) -> Store:
    """A default store belonging to the test user's organization."""
    return await store_factory(slug="acme")


@pytest_asyncio.fixture
async def other_store(store_factory: Callable[..., Any]) -> Store:
    """A store belonging to a DIFFERENT organization (for multi-tenancy tests)."""
    return await store_factory(name="Other Store", slug="other", organization_id=OTHER_ORG_ID)


@pytest_asyncio.fixture
async def stripe_store(store_factory: Callable[..., Any]) -> Store:
    """A store with Stripe enabled and an encrypted secret key."""
    return await store_factory(
        slug="stripe-shop",
        payment_config={
            "stripe": {"enabled": True, "secret_key": encrypt_secret("sk_test_123")},
            "mercadopago": {"enabled": False},
        },
    )
