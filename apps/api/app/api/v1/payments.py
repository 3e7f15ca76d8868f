"""Payment method listing for the storefront."""

from fastapi import APIRouter, Depends

from app.core.deps import CurrentStore
from app.integrations.payments.registry import GatewayRegistry, get_gateway_registry
from app.schemas.payment import PaymentMethodsResponse
from app.services.payment_service import available_payment_methods

router = APIRouter()


@router.get("/methods", response_model=PaymentMethodsResponse)
async def list_payment_methods(
    store: CurrentStore,
    gateways: GatewayRegistry = Depends(get_gateway_registry),
) -> PaymentMethodsResponse:
    """Gateways enabled by the store, plus direct contact."""
    return PaymentMethodsResponse(methods=available_payment_methods(store, gateways))
