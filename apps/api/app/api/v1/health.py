"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import RedisClient, get_db
from app.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    redis: RedisClient,
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """
    Health check endpoint.

    Checks database and Redis connectivity and returns service status.
    """
    checks: dict[str, str] = {}
    healthy = True

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        healthy = False
        checks["database"] = f"unhealthy: {e}"

    try:
        await redis.ping()
        checks["redis"] = "healthy"
    except (RedisError, OSError) as e:
        logger.warning("Redis health check failed: %s", e)
        healthy = False
        checks["redis"] = f"unhealthy: {e}"

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for Kubernetes/container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """
    Readiness probe for Kubernetes/container orchestration.

    Checks if the service is ready to receive traffic.
    """
    await db.execute(text("SELECT 1"))

    return {"status": "ready"}
