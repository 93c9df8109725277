"""
Cart — owner-scoped line items and totals.

    from storefront import cart as CT

    owner = CT.OwnerKey.for_session(session_id)
    lines = CT.add_line(lines, owner, product.id, variant.id, 1)   # Result
    totals = CT.compute_totals(priced, discount).rounded()
"""

from storefront.cart._types import (
    OwnerKey,
    CartLineItem,
    PricedLine,
    CartEntry,
    ShippingRule,
    CartTotals,
    Cart,
)
from storefront.cart._lines import (
    Lines,
    new_line_id,
    add_line,
    remove_line,
    change_quantity,
    merge_lines,
)
from storefront.cart._totals import shipping_for, compute_totals

__all__ = (
    "OwnerKey",
    "CartLineItem",
    "PricedLine",
    "CartEntry",
    "ShippingRule",
    "CartTotals",
    "Cart",
    "Lines",
    "new_line_id",
    "add_line",
    "remove_line",
    "change_quantity",
    "merge_lines",
    "shipping_for",
    "compute_totals",
)
