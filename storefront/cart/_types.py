"""
Cart types.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from storefront._types import LineId, ProductId, SessionId, UserId, VariantId
from storefront.catalog import (
    PLACEHOLDER_IMAGE,
    Product,
    ProductVariant,
    effective_price,
    primary_image,
)
from storefront.discount import AppliedDiscount
from storefront.money import ZERO, round_money

# ═══════════════════════════════════════════════════════════════════════════════
# Owner Key
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OwnerKey:
    """
    Who a cart belongs to: an authenticated user or an anonymous session.

    Exactly one of the two ids is set.
    """

    user_id: UserId | None = None
    session_id: SessionId | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.session_id is None):
            raise ValueError("OwnerKey needs exactly one of user_id / session_id")

    @classmethod
    def for_user(cls, user_id: UserId) -> OwnerKey:
        return cls(user_id=user_id)

    @classmethod
    def for_session(cls, session_id: SessionId) -> OwnerKey:
        return cls(session_id=session_id)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def __str__(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"session:{self.session_id}"


# ═══════════════════════════════════════════════════════════════════════════════
# Line Items
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLineItem:
    """One variant in a cart. At most one line per (owner, variant)."""

    id: LineId
    owner: OwnerKey
    product_id: ProductId
    variant_id: VariantId
    quantity: int
    created_at: datetime | None = None

    def with_quantity(self, quantity: int) -> CartLineItem:
        return replace(self, quantity=quantity)

    def with_owner(self, owner: OwnerKey) -> CartLineItem:
        return replace(self, owner=owner)


@dataclass(frozen=True, slots=True)
class PricedLine:
    """A line joined with what the shopper sees and pays."""

    line_id: LineId
    product_id: ProductId
    variant_id: VariantId
    product_name: str
    unit_price: Decimal
    quantity: int
    size: str | None = None
    color: str | None = None
    image_url: str | None = None
    stock_quantity: int | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartEntry:
    """A stored line loaded together with its product and variant."""

    line: CartLineItem
    product: Product
    variant: ProductVariant

    def priced(self, placeholder: str = PLACEHOLDER_IMAGE) -> PricedLine:
        return PricedLine(
            line_id=self.line.id,
            product_id=self.product.id,
            variant_id=self.variant.id,
            product_name=self.product.name,
            unit_price=effective_price(self.product),
            quantity=self.line.quantity,
            size=self.variant.size,
            color=self.variant.color,
            image_url=primary_image(self.product, placeholder),
            stock_quantity=self.variant.stock_quantity,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Totals
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShippingRule:
    threshold: Decimal = Decimal("100")
    flat_fee: Decimal = Decimal("10")


@dataclass(frozen=True, slots=True)
class CartTotals:
    """
    Unrounded totals.

    total == max(0, subtotal - discount_amount) + shipping
    """

    subtotal: Decimal
    discount_amount: Decimal
    shipping: Decimal
    total: Decimal
    discount: AppliedDiscount | None = None

    @property
    def free_shipping(self) -> bool:
        return self.shipping == ZERO

    def rounded(self) -> CartTotals:
        return CartTotals(
            subtotal=round_money(self.subtotal),
            discount_amount=round_money(self.discount_amount),
            shipping=round_money(self.shipping),
            total=round_money(self.total),
            discount=self.discount,
        )


@dataclass(frozen=True, slots=True)
class Cart:
    owner: OwnerKey
    lines: tuple[PricedLine, ...]
    totals: CartTotals

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


__all__ = (
    "OwnerKey",
    "CartLineItem",
    "PricedLine",
    "CartEntry",
    "ShippingRule",
    "CartTotals",
    "Cart",
)
