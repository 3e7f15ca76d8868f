"""Payment gateway webhook receiver.

Signatures are verified inline; applying the event happens in the
``process_payment_webhook`` worker task so gateways get a fast 200.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.exceptions import WebhookVerificationError
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.schemas.payment import WebhookAcceptedResponse
from app.workers.tasks.payments import process_payment_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{gateway}", response_model=WebhookAcceptedResponse)
async def receive_payment_webhook(
    gateway: str,
    request: Request,
    gateways: GatewayRegistry = Depends(get_gateway_registry),
) -> WebhookAcceptedResponse:
    """Verify and enqueue a gateway notification."""
    provider = gateways.get(gateway)
    if provider is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Unknown payment gateway")

    body = await request.body()
    try:
        event = provider.process_webhook(body, request.headers)
    except WebhookVerificationError as e:
        logger.warning("Rejected %s webhook: %s", gateway, e.message)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, e.message)

    process_payment_webhook.delay(provider.name, event.to_payload())
    return WebhookAcceptedResponse(status="accepted")
