"""Cart aggregation: lookup-or-create, line merging and totals."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    CrossStoreReferenceError,
    InvalidQuantityError,
    NotFoundError,
    ProductUnavailableError,
)
from app.core.money import ZERO, to_money
from app.models.cart import Cart, CartItem
from app.models.product import Product, ProductVariation
from app.schemas.cart import CartItemResponse, CartSummaryResponse

logger = logging.getLogger(__name__)


def available_stock(product: Product, variation: ProductVariation | None) -> int:
    """Stock that governs a line: the variation's when it has any, else the product's."""
    if variation is not None and variation.stock > 0:
        return variation.stock
    return product.stock


class CartService:
    """Service for store-scoped shopping carts."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_or_create_cart(
        self,
        store_id: UUID,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> Cart:
        """Return the cart for this identity, creating it on first access.

        A user id takes precedence over a session id. Two concurrent first
        requests race on the unique constraint; the loser re-reads.
        """
        if not user_id and not session_id:
            raise ValueError("A cart needs a session id or a user id")

        cart = await self.find_cart(store_id, session_id=session_id, user_id=user_id)
        if cart is not None:
            return cart

        cart = Cart(
            store_id=store_id,
            user_id=user_id,
            session_id=None if user_id else session_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(cart)
        except IntegrityError:
            existing = await self.find_cart(store_id, session_id=session_id, user_id=user_id)
            if existing is None:
                raise
            return existing
        await self.db.commit()

        logger.debug("Created cart %s for store %s", cart.id, store_id)
        return cart

    async def find_cart(
        self,
        store_id: UUID,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> Cart | None:
        """Look up an existing cart without creating one."""
        if user_id:
            condition = Cart.user_id == user_id
        elif session_id:
            condition = Cart.session_id == session_id
        else:
            return None

        result = await self.db.execute(
            select(Cart).where(Cart.store_id == store_id, condition)
        )
        return result.scalar_one_or_none()

    async def add_item(
        self,
        cart: Cart,
        product: Product,
        quantity: int = 1,
        variation: ProductVariation | None = None,
    ) -> CartItem:
        """Add a product to the cart, merging with an identical existing line.

        The unit price is captured now (variation price, else product price)
        and is not re-read later.
        """
        if quantity < 1:
            raise InvalidQuantityError()
        if product.store_id != cart.store_id:
            raise CrossStoreReferenceError()
        if variation is not None and variation.product_id != product.id:
            raise CrossStoreReferenceError("Variation does not belong to this product")
        if not product.is_active:
            raise ProductUnavailableError(f"{product.name} is not available")
        if available_stock(product, variation) <= 0:
            raise ProductUnavailableError(f"{product.name} is out of stock")

        variation_id = variation.id if variation is not None else None
        query = select(CartItem).where(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product.id,
            CartItem.variation_id == variation_id
            if variation_id is not None
            else CartItem.variation_id.is_(None),
        )
        item = (await self.db.execute(query)).scalar_one_or_none()

        if item is not None:
            item.quantity += quantity
        else:
            if variation is not None and variation.price is not None:
                unit_price = variation.price
            else:
                unit_price = product.price
            item = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                variation_id=variation_id,
                quantity=quantity,
                unit_price=to_money(unit_price),
            )
            self.db.add(item)

        await self.db.commit()
        return item

    async def get_item(self, cart: Cart, item_id: UUID) -> CartItem:
        """Fetch a line through its cart; lines of other carts are not found."""
        item = await self.db.scalar(
            select(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        )
        if item is None:
            raise NotFoundError("Cart item not found")
        return item

    async def update_item_quantity(self, item: CartItem, quantity: int) -> CartItem:
        if quantity < 1:
            raise InvalidQuantityError()
        item.quantity = quantity
        await self.db.commit()
        return item

    async def remove_item(self, item: CartItem) -> None:
        await self.db.delete(item)
        await self.db.commit()

    async def clear_cart(self, cart: Cart, *, commit: bool = True) -> None:
        """Delete every line. Checkout clears inside its own transaction."""
        await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        if commit:
            await self.db.commit()

    async def load_items(self, cart: Cart) -> list[CartItem]:
        """Cart lines with product and variation eagerly loaded, oldest first."""
        result = await self.db.execute(
            select(CartItem)
            .where(CartItem.cart_id == cart.id)
            .options(selectinload(CartItem.product), selectinload(CartItem.variation))
            .order_by(CartItem.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_cart_summary(self, cart: Cart) -> CartSummaryResponse:
        """Project the cart; totals are recomputed from the lines on every call."""
        items = await self.load_items(cart)
        subtotal = self.subtotal(items)
        return CartSummaryResponse(
            id=cart.id,
            items=[CartItemResponse.model_validate(item) for item in items],
            items_count=sum(item.quantity for item in items),
            subtotal=subtotal,
            total=subtotal,
        )

    @staticmethod
    def subtotal(items: list[CartItem]) -> Decimal:
        return to_money(sum((item.unit_price * item.quantity for item in items), ZERO))
