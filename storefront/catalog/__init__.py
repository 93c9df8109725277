"""
Catalog — products, variant selectors and listing queries.

    from storefront import catalog as K

    selectors = K.resolve_selectors(product)
    selectors.labels                       # ("50ml", "100ml")
    K.is_option_available(product, "50ml")  # False when 50ml has no stock

    match K.select_variant(product, "100ml", quantity=2):
        case Ok(selection): ...
        case Error(e): print(e.message)     # "Please select a size/volume"

    query = K.build_query(K.FilterSelections(categories=("women",), in_stock=True))
"""

from storefront.catalog._types import (
    Category,
    ProductVariant,
    ProductImage,
    Product,
    VariantDraft,
    ProductDraft,
    CategoryDraft,
    ProductKind,
    Axis,
    StockLevel,
    SizeOption,
    SelectorSet,
    Selection,
)
from storefront.catalog._variants import (
    FRAGRANCE_SLUG,
    LOW_STOCK_THRESHOLD,
    product_kind,
    parse_volume,
    volume_label,
    resolve_selectors,
    resolve_variant,
    is_option_available,
    is_color_available,
    classify_stock,
    clamp_quantity,
    SelectionRejection,
    select_variant,
)
from storefront.catalog._pricing import (
    PLACEHOLDER_IMAGE,
    has_sale_price,
    effective_price,
    discount_percentage,
    primary_image,
)
from storefront.catalog._drafts import (
    slugify,
    validate_product_draft,
    validate_category_draft,
)
from storefront.catalog._filters import (
    DEFAULT_PAGE_SIZE,
    CategoryPolicy,
    FilterSelections,
    QueryDescriptor,
    Page,
    build_query,
    apply_size_filter,
    paginate,
)

__all__ = (
    # Types
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
    # Variants
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
    # Pricing
    "PLACEHOLDER_IMAGE",
    "has_sale_price",
    "effective_price",
    "discount_percentage",
    "primary_image",
    # Drafts
    "slugify",
    "validate_product_draft",
    "validate_category_draft",
    # Filters
    "DEFAULT_PAGE_SIZE",
    "CategoryPolicy",
    "FilterSelections",
    "QueryDescriptor",
    "Page",
    "build_query",
    "apply_size_filter",
    "paginate",
)
