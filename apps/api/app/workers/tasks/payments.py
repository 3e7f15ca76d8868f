"""Celery task applying verified payment gateway webhooks."""

import logging
from typing import Any

from app.core.database import async_session_maker
from app.integrations.payments.base import WebhookEvent
from app.services.payment_service import PaymentService
from app.workers.celery_app import BaseTask, celery_app, run_async

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.payments.process_payment_webhook",
    base=BaseTask,
    bind=True,
)
def process_payment_webhook(
    self: BaseTask,  # noqa: ARG001
    gateway: str,
    event: dict[str, Any],
) -> dict[str, Any]:
    """Apply a gateway event to its payment and order.

    Safe to retry: an event whose status is already recorded is a no-op.
    """
    return run_async(_process_payment_webhook_async(gateway, event))


async def _process_payment_webhook_async(gateway: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Async implementation of webhook processing."""
    event = WebhookEvent.from_payload(payload)

    async with async_session_maker() as session:
        service = PaymentService(session)
        result = await service.apply_webhook_event(gateway, event)

    logger.info(
        "Processed %s webhook for payment %s: %s", gateway, event.payment_id, result
    )
    return {"status": result, "payment_id": event.payment_id}
