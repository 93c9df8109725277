"""
Filter composer — UI selections to a storage query description.

Two-phase filtering: storage narrows by category, price, colour, stock and
search; sizes are free text, so they are matched afterwards against the
variants of the fetched page (apply_size_filter).

Pagination asks for page_size + 1 rows; the extra row only signals that a
next page exists and is trimmed by paginate().
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, auto

from storefront.catalog._types import Product

DEFAULT_PAGE_SIZE = 12


class CategoryPolicy(Enum):
    """
    How more than one selected category is treated.

    WIDEN: query all categories and flag the descriptor so the caller can
           tell the shopper the scope was widened.
    MATCH_ANY: filter by every selected category (IN).
    """

    WIDEN = auto()
    MATCH_ANY = auto()


@dataclass(frozen=True, slots=True)
class FilterSelections:
    categories: tuple[str, ...] = ()
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    sizes: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    in_stock: bool = False
    search: str | None = None
    featured: bool = False
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page starts at 1")
        if self.page_size < 1:
            raise ValueError("page_size must be positive")


@dataclass(frozen=True, slots=True)
class QueryDescriptor:
    """What storage must fetch. Inclusive price bounds apply to base_price."""

    limit: int
    offset: int
    category: str | None = None
    categories: tuple[str, ...] = ()
    category_scope_widened: bool = False
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    colors: tuple[str, ...] = ()
    in_stock: bool = False
    search: str | None = None
    featured: bool = False
    active_only: bool = True

    @property
    def category_slugs(self) -> tuple[str, ...]:
        if self.category is not None:
            return (self.category,)
        return self.categories


@dataclass(frozen=True, slots=True)
class Page:
    items: tuple[Product, ...]
    page: int
    page_size: int
    has_next: bool
    category_scope_widened: bool = False

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def _clean(values: Sequence[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def build_query(
    selections: FilterSelections,
    category_policy: CategoryPolicy = CategoryPolicy.WIDEN,
) -> QueryDescriptor:
    categories = _clean(selections.categories)

    category: str | None = None
    many: tuple[str, ...] = ()
    widened = False
    if len(categories) == 1:
        category = categories[0]
    elif len(categories) > 1:
        if category_policy is CategoryPolicy.MATCH_ANY:
            many = categories
        else:
            widened = True

    search = selections.search.strip() if selections.search else None

    return QueryDescriptor(
        limit=selections.page_size + 1,
        offset=(selections.page - 1) * selections.page_size,
        category=category,
        categories=many,
        category_scope_widened=widened,
        price_min=selections.price_min,
        price_max=selections.price_max,
        colors=_clean([c.lower() for c in selections.colors]),
        in_stock=selections.in_stock,
        search=search or None,
        featured=selections.featured,
    )


def apply_size_filter(products: Sequence[Product], sizes: Sequence[str]) -> tuple[Product, ...]:
    """Keep products with at least one variant in one of the wanted sizes."""
    wanted = set(_clean(sizes))
    if not wanted:
        return tuple(products)
    return tuple(
        p for p in products
        if any(v.size is not None and v.size in wanted for v in p.variants)
    )


def paginate(
    products: Sequence[Product],
    page_size: int,
    page: int = 1,
    category_scope_widened: bool = False,
) -> Page:
    return Page(
        items=tuple(products[:page_size]),
        page=page,
        page_size=page_size,
        has_next=len(products) > page_size,
        category_scope_widened=category_scope_widened,
    )


__all__ = (
    "DEFAULT_PAGE_SIZE",
    "CategoryPolicy",
    "FilterSelections",
    "QueryDescriptor",
    "Page",
    "build_query",
    "apply_size_filter",
    "paginate",
)
