"""
Cart totals — subtotal, discount, shipping, total.

Nothing is rounded here; CartTotals.rounded() is for display and persistence.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from storefront.cart._types import CartTotals, PricedLine, ShippingRule
from storefront.discount import AppliedDiscount, discount_amount
from storefront.money import ZERO, line_total, sum_money


def shipping_for(subtotal: Decimal, rule: ShippingRule, has_items: bool = True) -> Decimal:
    if not has_items or subtotal >= rule.threshold:
        return ZERO
    return rule.flat_fee


def compute_totals(
    lines: Sequence[PricedLine],
    discount: AppliedDiscount | None = None,
    rule: ShippingRule = ShippingRule(),
) -> CartTotals:
    subtotal = sum_money(line_total(line.unit_price, line.quantity) for line in lines)
    off = discount_amount(discount.percentage, subtotal) if discount is not None else ZERO
    shipping = shipping_for(subtotal, rule, has_items=bool(lines))

    return CartTotals(
        subtotal=subtotal,
        discount_amount=off,
        shipping=shipping,
        total=max(ZERO, subtotal - off) + shipping,
        discount=discount,
    )


__all__ = ("shipping_for", "compute_totals")
