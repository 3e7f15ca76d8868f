"""Decimal helpers for monetary amounts."""

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize a value to two decimal places (half up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    """Convert a money amount to integer minor units."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))
