"""
Variant resolution — selectors, availability, stock levels.

Product kind is resolved once; each kind derives its selectors through its own
pure function (see _DERIVE).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import Enum, auto

from kungfu import Result, Ok, Error

from storefront.catalog._types import (
    Axis,
    Product,
    ProductKind,
    ProductVariant,
    Selection,
    SelectorSet,
    SizeOption,
    StockLevel,
)
from storefront.errors import ValidationError

FRAGRANCE_SLUG = "perfumes"
LOW_STOCK_THRESHOLD = 5

_VOLUME = re.compile(r"^\s*(\d+)\s*(?:ml)?\s*$", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════════════════════════
# Product Kind
# ═══════════════════════════════════════════════════════════════════════════════


def _has_text(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def product_kind(product: Product, fragrance_slug: str = FRAGRANCE_SLUG) -> ProductKind:
    """
    FRAGRANCE when the category slug matches, whatever colour data the
    variants carry. APPAREL when any variant has a colour. GENERIC otherwise.
    """
    if product.category_slug == fragrance_slug:
        return ProductKind.FRAGRANCE
    if any(_has_text(v.color) for v in product.variants):
        return ProductKind.APPAREL
    return ProductKind.GENERIC


# ═══════════════════════════════════════════════════════════════════════════════
# Volume Parsing
# ═══════════════════════════════════════════════════════════════════════════════


def parse_volume(size: str | None) -> int | None:
    """'50ml', '50 ML', ' 50 ' -> 50. Anything else -> None."""
    if size is None:
        return None
    match = _VOLUME.match(size)
    if match is None:
        return None
    return int(match.group(1))


def volume_label(volume: int) -> str:
    return f"{volume}ml"


# ═══════════════════════════════════════════════════════════════════════════════
# Selector Derivation (one function per kind)
# ═══════════════════════════════════════════════════════════════════════════════


def _distinct[T](values: list[T]) -> tuple[T, ...]:
    return tuple(dict.fromkeys(values))


def _size_options(variants: tuple[ProductVariant, ...]) -> tuple[SizeOption, ...]:
    sizes = _distinct([v.size for v in variants if v.size is not None and _has_text(v.size)])
    return tuple(SizeOption(label=s, source_sizes=(s,)) for s in sizes)


def _derive_fragrance(product: Product) -> SelectorSet:
    by_volume: dict[int, list[str]] = {}
    for v in product.variants:
        volume = parse_volume(v.size)
        if volume is None or v.size is None:
            continue
        sources = by_volume.setdefault(volume, [])
        if v.size not in sources:
            sources.append(v.size)

    options = tuple(
        SizeOption(label=volume_label(volume), source_sizes=tuple(by_volume[volume]))
        for volume in sorted(by_volume)
    )
    return SelectorSet(kind=ProductKind.FRAGRANCE, axes=(Axis.VOLUME,), sizes=options)


def _derive_apparel(product: Product) -> SelectorSet:
    colors = _distinct([v.color for v in product.variants if v.color is not None and _has_text(v.color)])
    return SelectorSet(
        kind=ProductKind.APPAREL,
        axes=(Axis.SIZE, Axis.COLOR),
        sizes=_size_options(product.variants),
        colors=colors,
    )


def _derive_generic(product: Product) -> SelectorSet:
    return SelectorSet(
        kind=ProductKind.GENERIC,
        axes=(Axis.SIZE,),
        sizes=_size_options(product.variants),
    )


_DERIVE: dict[ProductKind, Callable[[Product], SelectorSet]] = {
    ProductKind.FRAGRANCE: _derive_fragrance,
    ProductKind.APPAREL: _derive_apparel,
    ProductKind.GENERIC: _derive_generic,
}


def resolve_selectors(product: Product, fragrance_slug: str = FRAGRANCE_SLUG) -> SelectorSet:
    return _DERIVE[product_kind(product, fragrance_slug)](product)


# ═══════════════════════════════════════════════════════════════════════════════
# Variant Lookup & Availability
# ═══════════════════════════════════════════════════════════════════════════════


def _matches_size(variant: ProductVariant, size: str, kind: ProductKind) -> bool:
    if kind is ProductKind.FRAGRANCE:
        wanted = parse_volume(size)
        return wanted is not None and parse_volume(variant.size) == wanted
    return variant.size == size


def resolve_variant(
    product: Product,
    size: str | None,
    color: str | None = None,
    fragrance_slug: str = FRAGRANCE_SLUG,
) -> ProductVariant | None:
    """
    Find the concrete variant for a selection.

    No size -> None. Without a colour axis the size alone decides; with one,
    size and colour must both equal the stored values exactly.
    """
    if not size:
        return None

    kind = product_kind(product, fragrance_slug)
    candidates = [v for v in product.variants if _matches_size(v, size, kind)]

    if kind is ProductKind.APPAREL:
        if not color:
            return None
        candidates = [v for v in candidates if v.color == color]

    if not candidates:
        return None
    # Several spellings of one volume: prefer a row that can actually ship.
    for v in candidates:
        if v.in_stock:
            return v
    return candidates[0]


def is_option_available(
    product: Product,
    option: str,
    fragrance_slug: str = FRAGRANCE_SLUG,
) -> bool:
    """True iff some variant with this size (any colour) has stock."""
    kind = product_kind(product, fragrance_slug)
    return any(_matches_size(v, option, kind) and v.in_stock for v in product.variants)


def is_color_available(
    product: Product,
    size: str,
    color: str,
    fragrance_slug: str = FRAGRANCE_SLUG,
) -> bool:
    kind = product_kind(product, fragrance_slug)
    return any(
        _matches_size(v, size, kind) and v.color == color and v.in_stock
        for v in product.variants
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Stock & Quantity
# ═══════════════════════════════════════════════════════════════════════════════


def classify_stock(variant: ProductVariant, low_threshold: int = LOW_STOCK_THRESHOLD) -> StockLevel:
    if variant.stock_quantity <= 0:
        return StockLevel.OUT_OF_STOCK
    if variant.stock_quantity < low_threshold:
        return StockLevel.LOW_STOCK
    return StockLevel.IN_STOCK


def clamp_quantity(requested: int, variant: ProductVariant | None = None) -> int:
    """Clamp to [1, stock] with a resolved variant, [1, inf) without one."""
    if variant is None:
        return max(1, requested)
    return max(1, min(requested, variant.stock_quantity))


# ═══════════════════════════════════════════════════════════════════════════════
# Selection Gate: add-to-cart / buy-now
# ═══════════════════════════════════════════════════════════════════════════════


class SelectionRejection(Enum):
    MISSING_SIZE = auto()
    MISSING_COLOR = auto()
    UNAVAILABLE = auto()
    OUT_OF_STOCK = auto()


def _missing_selection_message(selectors: SelectorSet) -> str:
    if selectors.has_color_axis:
        return "Please select size and color"
    return "Please select a size/volume"


def select_variant(
    product: Product,
    size: str | None,
    color: str | None = None,
    quantity: int = 1,
    *,
    fragrance_slug: str = FRAGRANCE_SLUG,
    low_threshold: int = LOW_STOCK_THRESHOLD,
) -> Result[Selection, ValidationError]:
    """Resolve a selection or explain what the shopper still has to pick."""
    selectors = resolve_selectors(product, fragrance_slug)

    if not size:
        return Error(ValidationError(
            _missing_selection_message(selectors),
            field="size",
            reason=SelectionRejection.MISSING_SIZE,
        ))
    if selectors.has_color_axis and not color:
        return Error(ValidationError(
            _missing_selection_message(selectors),
            field="color",
            reason=SelectionRejection.MISSING_COLOR,
        ))

    variant = resolve_variant(product, size, color, fragrance_slug)
    if variant is None:
        return Error(ValidationError(
            f"{product.name}: the selected option is not available",
            field="size",
            reason=SelectionRejection.UNAVAILABLE,
        ))

    level = classify_stock(variant, low_threshold)
    if level is StockLevel.OUT_OF_STOCK:
        return Error(ValidationError(
            f"{product.name} ({size}) is out of stock",
            field="size",
            reason=SelectionRejection.OUT_OF_STOCK,
        ))

    return Ok(Selection(
        product=product,
        variant=variant,
        quantity=clamp_quantity(quantity, variant),
        stock_level=level,
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "FRAGRANCE_SLUG",
    "LOW_STOCK_THRESHOLD",
    "product_kind",
    "parse_volume",
    "volume_label",
    "resolve_selectors",
    "resolve_variant",
    "is_option_available",
    "is_color_available",
    "classify_stock",
    "clamp_quantity",
    "SelectionRejection",
    "select_variant",
)
