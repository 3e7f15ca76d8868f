"""Checkout: turns a cart into an order in one transaction."""

import logging
from dataclasses import dataclass
from decimal import Decimal

import redis.asyncio as aioredis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.exceptions import (
    CrossStoreReferenceError,
    EmptyCartError,
    InsufficientStockError,
    PaymentMethodUnavailableError,
    ProductUnavailableError,
)
from app.core.money import ZERO, to_money
from app.core.security import generate_order_number
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.models.cart import Cart, CartItem
from app.models.order import DeliveryStatus, Order, OrderItem, PaymentStatus, StatusKind
from app.models.product import Product, ProductVariation
from app.models.store import Store
from app.schemas.checkout import CheckoutRequest
from app.services.cart_service import CartService, available_stock
from app.services.events import CeleryEventSink, EventSink, OrderCreated
from app.services.payment_service import available_payment_methods
from app.services.shipping_service import ShippingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _StockClaim:
    """A cart line and the stock counter it draws from."""

    item: CartItem
    use_variation: bool

    @property
    def variation_name(self) -> str | None:
        return self.item.variation.name if self.item.variation is not None else None


class CheckoutService:
    """Orchestrates stock validation, shipping, order creation and stock decrement."""

    def __init__(
        self,
        db: AsyncSession,
        redis: aioredis.Redis,
        events: EventSink | None = None,
        shipping: ShippingService | None = None,
        gateways: GatewayRegistry | None = None,
    ) -> None:
        self.db = db
        self.events = events or CeleryEventSink()
        self.carts = CartService(db)
        self.shipping = shipping or ShippingService(db, redis)
        self.gateways = gateways or get_gateway_registry()

    async def process_checkout(
        self,
        store: Store,
        cart: Cart,
        details: CheckoutRequest,
        user_id: str | None = None,
    ) -> Order:
        """Create an order from the cart.

        All-or-nothing: on any error the transaction is rolled back, so no
        order row, stock decrement or cart change survives. ``OrderCreated``
        is emitted only after the commit.

        Raises:
            EmptyCartError, InsufficientStockError, InvalidShippingSelectionError,
            PaymentMethodUnavailableError, ProductUnavailableError,
            CrossStoreReferenceError
        """
        if cart.store_id != store.id:
            raise CrossStoreReferenceError("Cart does not belong to this store")
        if details.payment_method not in available_payment_methods(store, self.gateways):
            raise PaymentMethodUnavailableError(details.payment_method)

        try:
            order = await self._place_order(store, cart, details, user_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Order %s created for store %s (total %s)",
            order.order_number,
            store.slug,
            order.total,
        )
        self.events.emit(OrderCreated.from_order(order))
        return order

    async def _place_order(
        self,
        store: Store,
        cart: Cart,
        details: CheckoutRequest,
        user_id: str | None,
    ) -> Order:
        items = await self.carts.load_items(cart)
        if not items:
            raise EmptyCartError()

        claims = [self._check_stock(store, item) for item in items]
        shipping_cost, shipping_method = await self._resolve_shipping(store, items, details)

        subtotal = self.carts.subtotal(items)
        order = Order(
            store_id=store.id,
            order_number=generate_order_number(),
            user_id=user_id,
            customer_name=details.customer_name,
            customer_email=details.customer_email,
            customer_phone=details.customer_phone,
            shipping_address=details.address_dict(),
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            shipping_method=shipping_method,
            total=to_money(subtotal + shipping_cost),
            payment_method=details.payment_method,
            payment_status=PaymentStatus.PENDING,
            delivery_status=DeliveryStatus.PENDING,
            status_history=[],
            notes=details.notes,
        )
        order.record_status(StatusKind.PAYMENT, PaymentStatus.PENDING.value)
        order.items = [
            OrderItem(
                product_id=item.product_id,
                variation_id=item.variation_id,
                product_name=item.product.name,
                variation_name=item.variation.name if item.variation is not None else None,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=to_money(item.unit_price * item.quantity),
            )
            for item in items
        ]
        self.db.add(order)
        await self.db.flush()

        for claim in claims:
            await self._decrement_stock(claim)

        await self.carts.clear_cart(cart, commit=False)
        return order

    def _check_stock(self, store: Store, item: CartItem) -> _StockClaim:
        product = item.product
        if product.store_id != store.id:
            raise CrossStoreReferenceError()
        if not product.is_active:
            raise ProductUnavailableError(f"{product.name} is no longer available")

        use_variation = item.variation is not None and item.variation.stock > 0
        claim = _StockClaim(item=item, use_variation=use_variation)
        available = available_stock(product, item.variation)
        if item.quantity > available:
            raise InsufficientStockError(product.name, available, claim.variation_name)
        return claim

    async def _resolve_shipping(
        self,
        store: Store,
        items: list[CartItem],
        details: CheckoutRequest,
    ) -> tuple[Decimal, str | None]:
        """Shipping is re-priced here; quotes shown earlier are not trusted.

        Without both a selection and a destination there is nothing to ship to,
        so the order carries no shipping.
        """
        if not details.has_shipping_selection or details.shipping_address is None:
            return ZERO, None

        resolved = await self.shipping.resolve_selected_option(
            store,
            details.shipping_address.zip,
            items,
            option_id=details.shipping_option_id,
            service_code=details.shipping_service,
        )
        return resolved.cost, resolved.method

    async def _decrement_stock(self, claim: _StockClaim) -> None:
        """Conditional decrement; a concurrent checkout that got there first fails this one."""
        item = claim.item
        model: type[Product] | type[ProductVariation]
        if claim.use_variation:
            model, row_id = ProductVariation, item.variation_id
        else:
            model, row_id = Product, item.product_id

        result = await self.db.execute(
            update(model)
            .where(model.id == row_id, model.stock >= item.quantity)
            .values(stock=model.stock - item.quantity)
            .returning(model.stock)
            .execution_options(synchronize_session=False)
        )
        remaining = result.scalar_one_or_none()
        if remaining is None:
            current = await self.db.scalar(select(model.stock).where(model.id == row_id))
            raise InsufficientStockError(item.product.name, current or 0, claim.variation_name)

        target = item.variation if claim.use_variation else item.product
        set_committed_value(target, "stock", remaining)
