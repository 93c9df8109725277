"""
Display helpers — effective price, sale badge, primary image.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from storefront.catalog._types import Product
from storefront.money import HUNDRED

PLACEHOLDER_IMAGE = "/images/default-product.jpg"


def has_sale_price(product: Product) -> bool:
    return product.discount_price is not None and product.discount_price < product.base_price


def effective_price(product: Product) -> Decimal:
    """Unit price a cart line is charged at."""
    if has_sale_price(product) and product.discount_price is not None:
        return product.discount_price
    return product.base_price


def discount_percentage(product: Product) -> int:
    """Whole-percent saving shown on the sale badge; 0 when not on sale."""
    if not has_sale_price(product) or product.discount_price is None:
        return 0
    saving = (product.base_price - product.discount_price) / product.base_price * HUNDRED
    return int(saving.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def primary_image(product: Product, placeholder: str = PLACEHOLDER_IMAGE) -> str:
    """First image by display_order, then the product's own image_url, then placeholder."""
    if product.images:
        first = min(product.images, key=lambda i: i.display_order)
        if first.image_url:
            return first.image_url
    if product.image_url:
        return product.image_url
    return placeholder


__all__ = (
    "PLACEHOLDER_IMAGE",
    "has_sale_price",
    "effective_price",
    "discount_percentage",
    "primary_image",
)
