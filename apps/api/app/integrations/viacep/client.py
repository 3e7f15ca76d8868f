"""ViaCEP postal-code lookup client."""

import logging
import re
from dataclasses import dataclass

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostalAddress:
    """City/state (plus street data when known) for a Brazilian CEP."""

    zip: str
    city: str
    state: str
    street: str | None = None
    neighborhood: str | None = None


def normalize_zip(value: str | None) -> str:
    """Strip everything but digits ("01310-100" -> "01310100")."""
    return re.sub(r"\D", "", value or "")


class PostalCodeClient:
    """Resolves a CEP to its address through ViaCEP."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.viacep_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.postal_lookup_timeout

    async def lookup(self, zip_code: str) -> PostalAddress | None:
        """Return the address for a CEP, or None if invalid, unknown or unreachable."""
        digits = normalize_zip(zip_code)
        if len(digits) != 8:
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/ws/{digits}/json/")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Postal code lookup failed for %s: %s", digits, e)
            return None

        if not isinstance(data, dict) or data.get("erro"):
            return None

        city = data.get("localidade")
        state = data.get("uf")
        if not city or not state:
            return None

        return PostalAddress(
            zip=digits,
            city=city,
            state=state,
            street=data.get("logradouro") or None,
            neighborhood=data.get("bairro") or None,
        )
