"""Registry of payment gateways by name."""

from functools import lru_cache

from app.integrations.payments.base import PaymentGateway
from app.integrations.payments.mercadopago import MercadoPagoGateway
from app.integrations.payments.stripe import StripeGateway


class GatewayRegistry:
    """Holds the configured gateways, keyed by their ``name``."""

    def __init__(self, gateways: list[PaymentGateway] | None = None) -> None:
        self._gateways: dict[str, PaymentGateway] = {}
        for gateway in gateways or []:
            self.register(gateway)

    def register(self, gateway: PaymentGateway) -> None:
        self._gateways[gateway.name] = gateway

    def get(self, name: str) -> PaymentGateway | None:
        return self._gateways.get(name)

    def has(self, name: str) -> bool:
        return name in self._gateways

    def names(self) -> list[str]:
        return list(self._gateways)


@lru_cache
def get_gateway_registry() -> GatewayRegistry:
    """Default registry built from settings."""
    return GatewayRegistry([StripeGateway(), MercadoPagoGateway()])
