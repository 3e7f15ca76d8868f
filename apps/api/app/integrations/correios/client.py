"""Correios REST API client using httpx.

Three endpoints are used: contract authentication (returns a bearer
token), national price and national delivery deadline.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from app.core.config import settings
from app.core.money import to_money

logger = logging.getLogger(__name__)

TOKEN_PATH = "/token/v1/autentica/cartaopostagem"
PRICE_PATH = "/preco/v1/nacional"
DEADLINE_PATH = "/prazo/v1/nacional"

# tpObjeto: 2 = package
PACKAGE_OBJECT_TYPE = "2"


class CorreiosClient:
    """Async client for the Correios contract API."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.correios_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.correios_timeout

    async def authenticate(self, user: str, password: str, posting_card: str) -> str | None:
        """Exchange contract credentials for a bearer token."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}{TOKEN_PATH}",
                auth=(user, password),
                json={"numero": posting_card},
            )

        if not response.is_success:
            logger.warning(
                "Correios authentication failed for card %s: %s",
                posting_card,
                response.status_code,
            )
            return None

        data = response.json()
        token = data.get("token") if isinstance(data, dict) else None
        return str(token) if token else None

    async def fetch_price(
        self,
        token: str,
        service_code: str,
        origin_zip: str,
        destination_zip: str,
        weight_grams: int,
        length: float,
        width: float,
        height: float,
    ) -> Decimal | None:
        """Quote a single service. Returns None when no usable price comes back."""
        params = {
            "coProduto": service_code,
            "cepOrigem": origin_zip,
            "cepDestino": destination_zip,
            "psObjeto": str(weight_grams),
            "tpObjeto": PACKAGE_OBJECT_TYPE,
            "comprimento": str(math.ceil(length)),
            "largura": str(math.ceil(width)),
            "altura": str(math.ceil(height)),
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}{PRICE_PATH}",
                params=params,
                headers=self._headers(token),
            )

        if not response.is_success:
            logger.warning(
                "Correios price request for %s failed: %s",
                service_code,
                response.status_code,
            )
            return None

        data = response.json()
        if not isinstance(data, dict):
            logger.warning("Correios price for %s returned no object", service_code)
            return None
        return _parse_price(data)

    async def fetch_deadline(
        self,
        token: str,
        service_code: str,
        origin_zip: str,
        destination_zip: str,
    ) -> int | None:
        """Delivery estimate in days. A missing deadline does not void a price."""
        params = {
            "coProduto": service_code,
            "cepOrigem": origin_zip,
            "cepDestino": destination_zip,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}{DEADLINE_PATH}",
                    params=params,
                    headers=self._headers(token),
                )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Correios deadline request for %s failed: %s", service_code, e)
            return None

        if not isinstance(data, dict):
            return None

        days = data.get("prazoEntrega") or data.get("prazo")
        try:
            return int(days) if days is not None else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}


def _parse_price(data: dict[str, Any]) -> Decimal | None:
    """Read the final price; amounts use a decimal comma ("27,50")."""
    raw = data.get("pcFinal") or data.get("vlTotalPreco") or data.get("pcBase")
    if raw is None:
        return None
    text = str(raw)
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        price = Decimal(text)
    except InvalidOperation:
        return None
    if price <= 0:
        return None
    return to_money(price)
