"""Shipping option listing and checkout-time shipping resolution."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.encryption import reveal_secret
from app.core.exceptions import InvalidShippingSelectionError
from app.core.money import to_money
from app.integrations.viacep.client import PostalAddress, PostalCodeClient
from app.models.cart import CartItem
from app.models.shipping_option import ShippingOption
from app.models.store import Store
from app.schemas.shipping import ShippingQuote
from app.services.shipping_estimator import CarrierCredentials, Parcel, ShippingEstimator

logger = logging.getLogger(__name__)

# Per-unit defaults when neither variation nor product declares a value
DEFAULT_WEIGHT_GRAMS = Decimal("300")
DEFAULT_LENGTH_CM = Decimal("20")
DEFAULT_WIDTH_CM = Decimal("15")
DEFAULT_HEIGHT_CM = Decimal("5")

# Stacked height is capped at the carrier's maximum package side
MAX_PACKAGE_HEIGHT_CM = Decimal("100")


@dataclass(frozen=True)
class ResolvedShipping:
    cost: Decimal
    method: str


def _dimension(item: CartItem, attr: str, default: Decimal) -> Decimal:
    """Variation value, else product value, else the default."""
    if item.variation is not None:
        value = getattr(item.variation, attr)
        if value is not None:
            return Decimal(value)
    value = getattr(item.product, attr)
    return Decimal(value) if value is not None else default


def aggregate_parcel(items: Sequence[CartItem]) -> Parcel:
    """Combine cart lines into one package.

    Weights add up, length and width take the largest line, heights stack
    (capped at 100 cm). Items are expected with product/variation loaded.
    """
    weight_grams = Decimal("0")
    length = Decimal("0")
    width = Decimal("0")
    height = Decimal("0")

    for item in items:
        weight_grams += _dimension(item, "weight", DEFAULT_WEIGHT_GRAMS) * item.quantity
        length = max(length, _dimension(item, "length", DEFAULT_LENGTH_CM))
        width = max(width, _dimension(item, "width", DEFAULT_WIDTH_CM))
        height += _dimension(item, "height", DEFAULT_HEIGHT_CM) * item.quantity

    return Parcel(
        weight_kg=weight_grams / 1000,
        length=length,
        width=width,
        height=min(height, MAX_PACKAGE_HEIGHT_CM),
    )


def matches_destination(option: ShippingOption, address: PostalAddress | None) -> bool:
    """Whether a fixed-rate option covers the destination address."""
    option_city = (option.city or "").strip().lower()
    option_state = (option.state or "").strip().upper()

    if not option_city and not option_state:
        return True
    if address is None:
        return False

    state_matches = not option_state or option_state == address.state.strip().upper()
    if not option_city:
        return state_matches
    return state_matches and option_city == address.city.strip().lower()


def carrier_credentials(store: Store) -> CarrierCredentials | None:
    """Decrypted Correios contract credentials, if the store has a complete set."""
    password = reveal_secret(store.correios_password)
    if not (store.correios_user and password and store.correios_posting_card):
        return None
    return CarrierCredentials(
        user=store.correios_user,
        password=password,
        posting_card=store.correios_posting_card,
    )


class ShippingService:
    """Builds shipping quotes and validates the customer's choice."""

    def __init__(
        self,
        db: AsyncSession,
        redis: aioredis.Redis,
        estimator: ShippingEstimator | None = None,
        postal_client: PostalCodeClient | None = None,
    ) -> None:
        self.db = db
        self.estimator = estimator or ShippingEstimator(redis)
        self.postal_client = postal_client or PostalCodeClient()

    async def calculate_shipping_options(
        self,
        store: Store,
        destination_zip: str,
        items: Sequence[CartItem],
    ) -> list[ShippingQuote]:
        """Fixed-rate options matching the destination, then carrier quotes."""
        address = await self.postal_client.lookup(destination_zip)
        if address is None:
            logger.info("No address for CEP %s, offering unrestricted options only", destination_zip)

        options = await self._active_options(store.id)
        quotes = [
            ShippingQuote(
                type="fixed",
                id=option.id,
                name=option.name,
                price=to_money(option.price),
                delivery_days=option.delivery_days,
            )
            for option in options
            if matches_destination(option, address)
        ]
        quotes.extend(await self.carrier_quotes(store, destination_zip, items))
        return quotes

    async def carrier_quotes(
        self,
        store: Store,
        destination_zip: str,
        items: Sequence[CartItem],
    ) -> list[ShippingQuote]:
        """Carrier quotes for the cart, or nothing if the store ships from nowhere."""
        if not store.shipping_zip:
            return []

        parcel = aggregate_parcel(items)
        results = await self.estimator.calculate(
            store.shipping_zip,
            destination_zip,
            parcel.weight_kg,
            parcel.length,
            parcel.width,
            parcel.height,
            credentials=carrier_credentials(store),
        )
        return [
            ShippingQuote(
                type="carrier",
                service=quote.service,
                name=quote.name,
                price=quote.price,
                delivery_days=quote.delivery_days,
            )
            for quote in results
        ]

    async def resolve_selected_option(
        self,
        store: Store,
        destination_zip: str,
        items: Sequence[CartItem],
        option_id: UUID | None = None,
        service_code: str | None = None,
    ) -> ResolvedShipping:
        """Re-validate the customer's shipping choice and price it.

        Raises:
            InvalidShippingSelectionError: nothing selected, the option is not
                an active option of this store (or does not serve the address),
                or the carrier service is not offered right now.
        """
        if option_id is not None:
            option = await self.db.scalar(
                select(ShippingOption).where(
                    ShippingOption.id == option_id,
                    ShippingOption.store_id == store.id,
                    ShippingOption.is_active == True,  # noqa: E712
                )
            )
            if option is None:
                raise InvalidShippingSelectionError("The selected shipping option is not available")

            if option.city or option.state:
                address = await self.postal_client.lookup(destination_zip)
                if not matches_destination(option, address):
                    raise InvalidShippingSelectionError(
                        "The selected shipping option does not deliver to this address"
                    )
            return ResolvedShipping(cost=to_money(option.price), method=option.name)

        if service_code:
            quotes = await self.carrier_quotes(store, destination_zip, items)
            match = next((q for q in quotes if q.service == service_code), None)
            if match is None:
                raise InvalidShippingSelectionError("The selected carrier service is unavailable")
            return ResolvedShipping(cost=to_money(match.price), method=match.name)

        raise InvalidShippingSelectionError("No shipping option selected")

    async def _active_options(self, store_id: UUID) -> list[ShippingOption]:
        result = await self.db.execute(
            select(ShippingOption)
            .where(
                ShippingOption.store_id == store_id,
                ShippingOption.is_active == True,  # noqa: E712
            )
            .order_by(ShippingOption.price)
        )
        return list(result.scalars().all())
