"""Carrier shipping estimates: Correios API first, formula estimate second.

``ShippingEstimator.calculate`` never raises on carrier trouble. When the
store has no contract credentials, or the API yields no usable price
(auth failure, HTTP error, timeout, bad payload), the deterministic
``estimate_fallback`` formula prices the parcel instead.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from decimal import Decimal

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.money import to_money
from app.integrations.correios.client import CorreiosClient
from app.integrations.viacep.client import normalize_zip

logger = logging.getLogger(__name__)

# Carrier minimums; smaller parcels are billed as if they had these sizes
MIN_LENGTH_CM = Decimal("16")
MIN_WIDTH_CM = Decimal("11")
MIN_HEIGHT_CM = Decimal("2")
MIN_WEIGHT_KG = Decimal("0.3")

VOLUMETRIC_DIVISOR = Decimal("6000")
ESTIMATE_SUFFIX = " (estimate)"

# Region distance by first CEP digit (origin row, destination column)
REGION_DISTANCE: tuple[tuple[int, ...], ...] = (
    (0, 0, 1, 1, 2, 3, 4, 2, 2, 3),
    (0, 0, 1, 1, 2, 3, 4, 2, 2, 3),
    (1, 1, 0, 1, 2, 3, 4, 2, 3, 3),
    (1, 1, 1, 0, 2, 3, 3, 1, 2, 3),
    (2, 2, 2, 2, 0, 1, 2, 2, 3, 4),
    (3, 3, 3, 3, 1, 0, 1, 3, 4, 5),
    (4, 4, 4, 3, 2, 1, 0, 3, 4, 5),
    (2, 2, 2, 1, 2, 3, 3, 0, 2, 3),
    (2, 2, 3, 2, 3, 4, 4, 2, 0, 1),
    (3, 3, 3, 3, 4, 5, 5, 3, 1, 0),
)
DEFAULT_DISTANCE = 3


@dataclass(frozen=True)
class CarrierService:
    """A carrier tier with its API code and fallback pricing constants."""

    code: str
    service_code: str
    name: str
    base_price: Decimal
    per_region: Decimal
    per_extra_kg: Decimal
    base_days: int
    days_per_region: int


SERVICES: tuple[CarrierService, ...] = (
    CarrierService(
        code="sedex",
        service_code="03220",
        name="SEDEX",
        base_price=Decimal("25.00"),
        per_region=Decimal("8.50"),
        per_extra_kg=Decimal("4.50"),
        base_days=1,
        days_per_region=1,
    ),
    CarrierService(
        code="pac",
        service_code="03298",
        name="PAC",
        base_price=Decimal("18.00"),
        per_region=Decimal("5.00"),
        per_extra_kg=Decimal("3.00"),
        base_days=5,
        days_per_region=2,
    ),
)


@dataclass(frozen=True)
class CarrierCredentials:
    user: str
    password: str
    posting_card: str


@dataclass(frozen=True)
class Parcel:
    """Package to ship: weight in kg, dimensions in cm."""

    weight_kg: Decimal
    length: Decimal
    width: Decimal
    height: Decimal

    @classmethod
    def of(
        cls,
        weight_kg: Decimal | float,
        length: Decimal | float,
        width: Decimal | float,
        height: Decimal | float,
    ) -> "Parcel":
        return cls(*(Decimal(str(v)) for v in (weight_kg, length, width, height)))

    def with_carrier_minimums(self) -> "Parcel":
        return Parcel(
            weight_kg=max(self.weight_kg, MIN_WEIGHT_KG),
            length=max(self.length, MIN_LENGTH_CM),
            width=max(self.width, MIN_WIDTH_CM),
            height=max(self.height, MIN_HEIGHT_CM),
        )

    @property
    def volumetric_weight(self) -> Decimal:
        return self.length * self.width * self.height / VOLUMETRIC_DIVISOR


@dataclass(frozen=True)
class CarrierQuote:
    service: str
    name: str
    price: Decimal
    delivery_days: int | None
    estimated: bool = False


def region_distance(origin_zip: str, destination_zip: str) -> int:
    """Distance between the CEP regions of two postal codes."""
    origin = normalize_zip(origin_zip)
    destination = normalize_zip(destination_zip)
    if not origin or not destination:
        return DEFAULT_DISTANCE
    return REGION_DISTANCE[int(origin[0])][int(destination[0])]


def estimate_fallback(
    origin_zip: str,
    destination_zip: str,
    weight_kg: Decimal | float,
    length: Decimal | float,
    width: Decimal | float,
    height: Decimal | float,
) -> list[CarrierQuote]:
    """Price every carrier tier from region distance and billable weight.

    billable = max(actual, L*W*H/6000)
    price = base + distance*per_region + max(0, billable - 1)*per_extra_kg
    days = base_days + distance*days_per_region
    """
    parcel = Parcel.of(weight_kg, length, width, height)
    distance = region_distance(origin_zip, destination_zip)
    billable = max(parcel.weight_kg, parcel.volumetric_weight)
    extra_kg = max(Decimal("0"), billable - 1)

    return [
        CarrierQuote(
            service=service.code,
            name=f"{service.name}{ESTIMATE_SUFFIX}",
            price=to_money(
                service.base_price + distance * service.per_region + extra_kg * service.per_extra_kg
            ),
            delivery_days=service.base_days + distance * service.days_per_region,
            estimated=True,
        )
        for service in SERVICES
    ]


# Single-flight guards for token refresh, one per credential. A lock made on
# another event loop is replaced, so there is one entry per posting card.
_token_locks: dict[str, tuple[weakref.ref[asyncio.AbstractEventLoop], asyncio.Lock]] = {}


def _token_lock(cache_key: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    entry = _token_locks.get(cache_key)
    if entry is None or entry[0]() is not loop:
        entry = (weakref.ref(loop), asyncio.Lock())
        _token_locks[cache_key] = entry
    return entry[1]


class ShippingEstimator:
    """Quotes carrier services for a parcel."""

    def __init__(
        self,
        redis: aioredis.Redis,
        client: CorreiosClient | None = None,
        total_timeout: float | None = None,
    ) -> None:
        self.redis = redis
        self.client = client or CorreiosClient()
        self.total_timeout = (
            total_timeout if total_timeout is not None else settings.correios_total_timeout
        )

    async def calculate(
        self,
        origin_zip: str,
        destination_zip: str,
        weight_kg: Decimal | float,
        length: Decimal | float,
        width: Decimal | float,
        height: Decimal | float,
        credentials: CarrierCredentials | None = None,
    ) -> list[CarrierQuote]:
        """Carrier API quotes when possible, formula estimates otherwise."""
        parcel = Parcel.of(weight_kg, length, width, height).with_carrier_minimums()
        origin = normalize_zip(origin_zip)
        destination = normalize_zip(destination_zip)

        quotes: list[CarrierQuote] = []
        if credentials is not None:
            quotes = await self.quote_from_carrier(origin, destination, parcel, credentials)
            if not quotes:
                logger.info(
                    "No carrier prices for %s -> %s, using estimate", origin, destination
                )

        return quotes or estimate_fallback(
            origin, destination, parcel.weight_kg, parcel.length, parcel.width, parcel.height
        )

    async def quote_from_carrier(
        self,
        origin_zip: str,
        destination_zip: str,
        parcel: Parcel,
        credentials: CarrierCredentials,
    ) -> list[CarrierQuote]:
        """Query the carrier API under a hard deadline. Empty list on any failure."""
        try:
            async with asyncio.timeout(self.total_timeout):
                return await self._request_quotes(origin_zip, destination_zip, parcel, credentials)
        except TimeoutError:
            logger.warning("Correios API timed out after %ss", self.total_timeout)
        except (httpx.HTTPError, RedisError, ValueError) as e:
            logger.warning("Correios API unavailable: %s", e)
        return []

    async def get_token(self, credentials: CarrierCredentials) -> str | None:
        """Cached bearer token; concurrent misses trigger a single authentication."""
        cache_key = f"correios:token:{credentials.posting_card}"
        token = await self.redis.get(cache_key)
        if token:
            return str(token)

        async with _token_lock(cache_key):
            token = await self.redis.get(cache_key)
            if token:
                return str(token)

            token = await self.client.authenticate(
                credentials.user, credentials.password, credentials.posting_card
            )
            if token:
                await self.redis.set(cache_key, token, ex=settings.correios_token_ttl_seconds)
            return token

    async def _request_quotes(
        self,
        origin_zip: str,
        destination_zip: str,
        parcel: Parcel,
        credentials: CarrierCredentials,
    ) -> list[CarrierQuote]:
        token = await self.get_token(credentials)
        if not token:
            return []

        results = await asyncio.gather(
            *(
                self._quote_service(token, service, origin_zip, destination_zip, parcel)
                for service in SERVICES
            )
        )
        return [quote for quote in results if quote is not None]

    async def _quote_service(
        self,
        token: str,
        service: CarrierService,
        origin_zip: str,
        destination_zip: str,
        parcel: Parcel,
    ) -> CarrierQuote | None:
        """One service's price and deadline; None drops the service."""
        try:
            price = await self.client.fetch_price(
                token,
                service.service_code,
                origin_zip,
                destination_zip,
                int(parcel.weight_kg * 1000),
                float(parcel.length),
                float(parcel.width),
                float(parcel.height),
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Correios %s quote failed: %s", service.name, e)
            return None
        if price is None:
            return None

        days = await self.client.fetch_deadline(
            token, service.service_code, origin_zip, destination_zip
        )
        return CarrierQuote(
            service=service.code,
            name=service.name,
            price=price,
            delivery_days=days,
        )
