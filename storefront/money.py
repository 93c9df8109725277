"""
Money — exact decimal arithmetic for prices, discounts and totals.

All intermediate values stay unrounded. round_money() is the single rounding
point and is applied only when a value is displayed or persisted.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, ROUND_HALF_UP

from storefront._types import Money

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def money(value: Decimal | int | float | str) -> Money:
    """
    Build an exact amount.

    Floats go through str() so 249.99 stays 249.99 instead of its binary
    expansion.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        amount = Decimal(value)

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    if amount < 0:
        raise ValueError(f"Amount must not be negative, got {value!r}")
    return amount


def line_total(unit_price: Money, quantity: int) -> Money:
    return unit_price * quantity


def sum_money(values: Iterable[Money]) -> Money:
    return sum(values, ZERO)


def percent_of(amount: Money, percentage: Decimal | int) -> Money:
    """percentage is a whole-number percent: 20 means 20%."""
    return amount * Decimal(percentage) / HUNDRED


def round_money(amount: Money) -> Money:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Money, currency: str = "USD") -> str:
    rounded = round_money(amount)
    if currency == "USD":
        return f"${rounded:,.2f}"
    return f"{rounded:,.2f} {currency}"


__all__ = (
    "ZERO",
    "CENT",
    "HUNDRED",
    "money",
    "line_total",
    "sum_money",
    "percent_of",
    "round_money",
    "format_money",
)
