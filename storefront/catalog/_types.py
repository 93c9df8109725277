"""
Catalog types — products, variants, categories and selector results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, auto

from storefront._types import CategoryId, ProductId, VariantId

# ═══════════════════════════════════════════════════════════════════════════════
# Category
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Category:
    """
    Catalog category.

    Only top-level (parent_id is None) active categories show in navigation;
    subcategories are fetched by parent id.
    """

    id: CategoryId
    name: str
    slug: str
    parent_id: CategoryId | None = None
    image_url: str | None = None
    description: str | None = None
    display_order: int = 0
    is_active: bool = True

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


# ═══════════════════════════════════════════════════════════════════════════════
# Product & Variants
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductVariant:
    """A purchasable size/colour (or volume) combination with its own stock."""

    id: VariantId
    product_id: ProductId
    sku: str
    size: str | None = None
    color: str | None = None
    stock_quantity: int = 0

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0


@dataclass(frozen=True, slots=True)
class ProductImage:
    id: str
    product_id: ProductId
    image_url: str
    display_order: int = 0


@dataclass(frozen=True, slots=True)
class Product:
    id: ProductId
    name: str
    slug: str
    description: str
    base_price: Decimal
    category: Category | None = None
    discount_price: Decimal | None = None
    image_url: str | None = None
    is_featured: bool = False
    is_active: bool = True
    rating: float = 0.0
    reviews_count: int = 0
    created_at: datetime | None = None
    images: tuple[ProductImage, ...] = ()
    variants: tuple[ProductVariant, ...] = ()

    @property
    def category_slug(self) -> str | None:
        return self.category.slug if self.category is not None else None

    def variant(self, variant_id: VariantId) -> ProductVariant | None:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Drafts: admin input before validation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VariantDraft:
    sku: str
    size: str | None = None
    color: str | None = None
    stock_quantity: int = 0


@dataclass(frozen=True, slots=True)
class ProductDraft:
    name: str
    slug: str
    description: str
    category_id: CategoryId | None
    base_price: Decimal
    discount_price: Decimal | None = None
    image_url: str | None = None
    is_featured: bool = False
    is_active: bool = True
    variants: tuple[VariantDraft, ...] = ()
    image_urls: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CategoryDraft:
    name: str
    slug: str
    parent_id: CategoryId | None = None
    image_url: str | None = None
    description: str | None = None
    display_order: int = 0
    is_active: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# Selector Resolution
# ═══════════════════════════════════════════════════════════════════════════════


class ProductKind(Enum):
    """Resolved once per product; drives which selectors are shown."""

    APPAREL = auto()  # size + colour
    FRAGRANCE = auto()  # volume only
    GENERIC = auto()  # size only


class Axis(Enum):
    SIZE = auto()
    COLOR = auto()
    VOLUME = auto()


class StockLevel(Enum):
    OUT_OF_STOCK = auto()
    LOW_STOCK = auto()
    IN_STOCK = auto()


@dataclass(frozen=True, slots=True)
class SizeOption:
    """
    A selectable size (or volume) label.

    source_sizes: the raw variant size strings the label stands for.
    For volumes several spellings ("50 ml", "50ml") collapse into one label.
    """

    label: str
    source_sizes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SelectorSet:
    kind: ProductKind
    axes: tuple[Axis, ...]
    sizes: tuple[SizeOption, ...]
    colors: tuple[str, ...] = ()

    @property
    def is_volume_only(self) -> bool:
        return self.kind is ProductKind.FRAGRANCE

    @property
    def has_color_axis(self) -> bool:
        return Axis.COLOR in self.axes

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(o.label for o in self.sizes)

    def option(self, label: str) -> SizeOption | None:
        for o in self.sizes:
            if o.label == label:
                return o
        return None


@dataclass(frozen=True, slots=True)
class Selection:
    """A resolved, in-stock variant with a clamped quantity."""

    product: Product
    variant: ProductVariant
    quantity: int
    stock_level: StockLevel = field(default=StockLevel.IN_STOCK)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Category",
    "ProductVariant",
    "ProductImage",
    "Product",
    "VariantDraft",
    "ProductDraft",
    "CategoryDraft",
    "ProductKind",
    "Axis",
    "StockLevel",
    "SizeOption",
    "SelectorSet",
    "Selection",
)
