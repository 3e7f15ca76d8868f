"""Celery application configuration."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from celery import Celery, signals

from app.core.config import settings
from app.core.logging_config import setup_logging

celery_app = Celery(
    "storefront",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "app.workers.tasks.payments",
        "app.workers.tasks.notifications",
    ],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task safety limits
    task_time_limit=120,
    task_soft_time_limit=90,
    # Redeliver if a worker dies mid-task; handlers are idempotent
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Result backend settings
    result_expires=3600,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    # Default queue name (must match worker -Q flag)
    task_default_queue="default",
    task_routes={
        "tasks.payments.*": {"queue": "payments"},
        "tasks.notifications.*": {"queue": "default"},
    },
)


@signals.setup_logging.connect
def _configure_worker_logging(**_kwargs: Any) -> None:
    """Use the API's JSON logging in workers instead of Celery's own handlers."""
    setup_logging(debug=settings.debug, service="worker")


class BaseTask(celery_app.Task):  # type: ignore[misc, name-defined]
    """Base task class: bounded retries with exponential backoff."""

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes between retries
    retry_jitter = True
    max_retries = 3


def run_async[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine in a fresh event loop, disposing DB connections after.

    asyncpg connections are bound to the loop that created them, so pooled
    connections must not outlive the per-task loop.
    """
    from app.core.database import engine

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()
