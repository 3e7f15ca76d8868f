"""JWT authentication for FastAPI using Better Auth JWKS.

Shoppers may browse and check out anonymously; an optional bearer token
ties their cart to an account. Store admins always authenticate.
"""

import asyncio
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient, PyJWKClientError

from app.core.config import settings

bearer_scheme = HTTPBearer(auto_error=False)

_jwks_client: PyJWKClient | None = None
_jwks_lock = asyncio.Lock()


def get_jwks_client() -> PyJWKClient:
    """Get or create the JWKS client."""
    global _jwks_client  # noqa: PLW0603
    if _jwks_client is None:
        jwks_url = settings.auth_jwks_url or f"{settings.auth_url}/api/auth/jwks"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    return _jwks_client


async def _reset_jwks_client() -> None:
    global _jwks_client  # noqa: PLW0603
    async with _jwks_lock:
        _jwks_client = None


async def verify_token(token: str) -> dict[str, Any]:
    """Verify a JWT against Better Auth's JWKS and return its payload.

    Raises:
        HTTPException: 401 if the token is invalid or expired, 503 if the
            signing keys cannot be fetched.
    """
    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        payload: dict[str, Any] = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "EdDSA"],
            audience=settings.auth_url,
            issuer=settings.auth_url,
            options={"require": ["exp", "sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except PyJWKClientError as e:
        # Next request rebuilds the client and refetches keys
        await _reset_jwks_client()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Authentication service unavailable: {e}",
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Require an authenticated user and return the decoded JWT payload."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await verify_token(credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any] | None:
    """Return the decoded JWT payload, or None for anonymous shoppers."""
    if credentials is None:
        return None

    try:
        return await verify_token(credentials.credentials)
    except HTTPException:
        return None


CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]
OptionalUser = Annotated[dict[str, Any] | None, Depends(get_optional_user)]
