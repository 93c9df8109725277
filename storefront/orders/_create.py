"""
Order creation helpers — order numbers and item snapshots.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import uuid4

from storefront.cart import PricedLine
from storefront.orders._types import OrderItem
from storefront.money import round_money

_ALPHABET = string.ascii_uppercase + string.digits


def order_token(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_order_number(now: datetime, token: str | None = None) -> str:
    """ORD-YYYYMMDD-XXXXXX"""
    return f"ORD-{now:%Y%m%d}-{token or order_token()}"


def snapshot_items(
    lines: Sequence[PricedLine],
    make_id: Callable[[], str] = lambda: uuid4().hex,
) -> tuple[OrderItem, ...]:
    return tuple(
        OrderItem(
            id=make_id(),
            product_id=line.product_id,
            variant_id=line.variant_id,
            product_name=line.product_name,
            price_at_purchase=round_money(line.unit_price),
            quantity=line.quantity,
            size=line.size,
            color=line.color,
        )
        for line in lines
    )


__all__ = ("order_token", "generate_order_number", "snapshot_items")
