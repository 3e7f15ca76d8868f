"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, Any
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from app.core.auth import (
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
)
from app.core.config import settings
from app.core.database import get_async_session
from app.core.security import generate_session_id
from app.models.store import Store, StoreDomain

CART_SESSION_HEADER = "X-Cart-Session"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session, overridden in tests."""
    async for session in get_async_session():
        yield session


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def close_redis_pool() -> None:
    """Disconnect the shared pool on shutdown."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]
RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]


def _store_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Store not found or inactive",
    )


def _slug_from_host(host: str) -> str | None:
    """``acme.lvh.me`` -> ``acme`` when the host sits under the platform domain."""
    suffix = f".{settings.platform_domain.lower()}"
    if not host.endswith(suffix):
        return None
    label = host[: -len(suffix)].split(".")[-1]
    return label or None


async def get_current_store(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Store:
    """Resolve the tenant of a storefront request.

    Order of precedence: ``X-Store-Id`` header, ``X-Store-Slug`` header,
    then the request host (a custom domain first, then a subdomain of the
    platform domain). Inactive stores do not resolve.
    """
    active = Store.is_active == True  # noqa: E712
    store_id = request.headers.get("X-Store-Id")
    slug = request.headers.get("X-Store-Slug")

    if store_id:
        try:
            condition = Store.id == UUID(store_id)
        except ValueError:
            raise _store_not_found()
        store = await db.scalar(select(Store).where(condition, active))
    elif slug:
        store = await db.scalar(select(Store).where(Store.slug == slug.lower(), active))
    else:
        host = (request.headers.get("host") or "").split(":")[0].lower()
        store = await db.scalar(
            select(Store)
            .join(StoreDomain, StoreDomain.store_id == Store.id)
            .where(StoreDomain.domain == host, active)
        )
        if store is None and (host_slug := _slug_from_host(host)):
            store = await db.scalar(select(Store).where(Store.slug == host_slug, active))

    if store is None:
        raise _store_not_found()
    return store


CurrentStore = Annotated[Store, Depends(get_current_store)]


@dataclass(frozen=True)
class CartIdentity:
    """Who owns the cart: a signed-in user or an anonymous session."""

    user_id: str | None
    session_id: str | None
    issued: bool = False


async def get_cart_identity(
    user: OptionalUser,
    x_cart_session: Annotated[str | None, Header(max_length=128)] = None,
) -> CartIdentity:
    """User id from the token, else the cart session header, else a new session."""
    if user is not None:
        return CartIdentity(user_id=str(user["sub"]), session_id=x_cart_session)
    if x_cart_session:
        return CartIdentity(user_id=None, session_id=x_cart_session)
    return CartIdentity(user_id=None, session_id=generate_session_id(), issued=True)


CartOwner = Annotated[CartIdentity, Depends(get_cart_identity)]


def get_user_organization_id(user: dict[str, Any]) -> str:
    """Extract organization ID from the authenticated user's JWT payload.

    Better Auth's JWT includes activeOrganizationId when a user has an active org.
    """
    org_id = user.get("activeOrganizationId")
    if not org_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No active organization. Please select or create an organization.",
        )
    return str(org_id)


async def get_store_for_user(
    store_id: UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> Store:
    """Get store by ID, verifying it belongs to the user's organization.

    Used by the admin endpoints, which take the store from the path.
    """
    org_id = get_user_organization_id(user)

    query = select(Store).where(
        Store.id == store_id,
        Store.organization_id == org_id,
    )
    result = await db.execute(query)
    store = result.scalar_one_or_none()

    if not store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not found or access denied",
        )

    return store


AdminStore = Annotated[Store, Depends(get_store_for_user)]


__all__ = [
    "AdminStore",
    "CART_SESSION_HEADER",
    "CartIdentity",
    "CartOwner",
    "CurrentStore",
    "CurrentUser",
    "DBSession",
    "OptionalUser",
    "RedisClient",
    "get_cart_identity",
    "get_current_store",
    "get_current_user",
    "get_db",
    "get_optional_user",
    "get_redis",
    "get_store_for_user",
    "get_user_organization_id",
]
