"""Shopping cart endpoints for the storefront."""

from uuid import UUID

from fastapi import APIRouter, Response, status
from sqlalchemy import select

from app.core.deps import CART_SESSION_HEADER, CartIdentity, CartOwner, CurrentStore, DBSession
from app.core.exceptions import NotFoundError
from app.models.cart import Cart
from app.models.product import Product, ProductVariation
from app.models.store import Store
from app.schemas.cart import CartItemAdd, CartItemUpdate, CartSummaryResponse
from app.services.cart_service import CartService

router = APIRouter()


async def _open_cart(
    service: CartService,
    store: Store,
    owner: CartIdentity,
    response: Response,
) -> Cart:
    """Load or create the caller's cart and echo the anonymous session id."""
    cart = await service.get_or_create_cart(
        store.id, session_id=owner.session_id, user_id=owner.user_id
    )
    if owner.session_id and not owner.user_id:
        response.headers[CART_SESSION_HEADER] = owner.session_id
    return cart


@router.get("", response_model=CartSummaryResponse)
async def get_cart(
    response: Response,
    db: DBSession,
    store: CurrentStore,
    owner: CartOwner,
) -> CartSummaryResponse:
    """Return the cart with totals recomputed from its lines."""
    service = CartService(db)
    cart = await _open_cart(service, store, owner, response)
    return await service.get_cart_summary(cart)


@router.post("/items", response_model=CartSummaryResponse, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    data: CartItemAdd,
    response: Response,
    db: DBSession,
    store: CurrentStore,
    owner: CartOwner,
) -> CartSummaryResponse:
    """Add a product to the cart; an identical line has its quantity increased."""
    product = await db.scalar(select(Product).where(Product.id == data.product_id))
    if product is None:
        raise NotFoundError("Product not found")

    variation = None
    if data.variation_id is not None:
        variation = await db.scalar(
            select(ProductVariation).where(ProductVariation.id == data.variation_id)
        )
        if variation is None:
            raise NotFoundError("Variation not found")

    service = CartService(db)
    cart = await _open_cart(service, store, owner, response)
    await service.add_item(cart, product, data.quantity, variation)
    return await service.get_cart_summary(cart)


@router.patch("/items/{item_id}", response_model=CartSummaryResponse)
async def update_cart_item(
    item_id: UUID,
    data: CartItemUpdate,
    response: Response,
    db: DBSession,
    store: CurrentStore,
    owner: CartOwner,
) -> CartSummaryResponse:
    service = CartService(db)
    cart = await _open_cart(service, store, owner, response)
    item = await service.get_item(cart, item_id)
    await service.update_item_quantity(item, data.quantity)
    return await service.get_cart_summary(cart)


@router.delete("/items/{item_id}", response_model=CartSummaryResponse)
async def remove_cart_item(
    item_id: UUID,
    response: Response,
    db: DBSession,
    store: CurrentStore,
    owner: CartOwner,
) -> CartSummaryResponse:
    service = CartService(db)
    cart = await _open_cart(service, store, owner, response)
    item = await service.get_item(cart, item_id)
    await service.remove_item(item)
    return await service.get_cart_summary(cart)


@router.delete("", response_model=CartSummaryResponse)
async def clear_cart(
    response: Response,
    db: DBSession,
    store: CurrentStore,
    owner: CartOwner,
) -> CartSummaryResponse:
    """Remove every line from the cart."""
    service = CartService(db)
    cart = await _open_cart(service, store, owner, response)
    await service.clear_cart(cart)
    return await service.get_cart_summary(cart)
