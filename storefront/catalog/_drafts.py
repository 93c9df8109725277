"""
Admin drafts — slug generation and product/category validation.
"""

from __future__ import annotations

import re

from kungfu import Result, Ok, Error

from storefront.catalog._types import CategoryDraft, ProductDraft
from storefront.errors import ValidationError

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """'Silk Wrap Dress / Red' -> 'silk-wrap-dress-red'"""
    return _NON_SLUG.sub("-", name.lower()).strip("-")


def _required(value: str | None, field: str, label: str) -> ValidationError | None:
    if value is None or not value.strip():
        return ValidationError(f"{label} is required", field=field)
    return None


def validate_product_draft(draft: ProductDraft) -> Result[ProductDraft, ValidationError]:
    checks = (
        _required(draft.name, "name", "Name"),
        _required(draft.slug, "slug", "Slug"),
        _required(draft.description, "description", "Description"),
        _required(draft.category_id, "category_id", "Category"),
    )
    for problem in checks:
        if problem is not None:
            return Error(problem)

    if draft.slug != slugify(draft.slug):
        return Error(ValidationError(
            "Slug may only contain lowercase letters, digits and dashes",
            field="slug",
        ))
    if draft.base_price <= 0:
        return Error(ValidationError("Base price must be greater than 0", field="base_price"))
    if draft.discount_price is not None:
        if draft.discount_price <= 0:
            return Error(ValidationError("Discount price must be greater than 0", field="discount_price"))
        if draft.discount_price >= draft.base_price:
            return Error(ValidationError(
                "Discount price must be less than base price",
                field="discount_price",
            ))

    seen: set[str] = set()
    for v in draft.variants:
        if not v.sku.strip():
            return Error(ValidationError("Variant SKU is required", field="variants"))
        if v.sku in seen:
            return Error(ValidationError(f"Duplicate SKU {v.sku!r}", field="variants"))
        seen.add(v.sku)
        if v.stock_quantity < 0:
            return Error(ValidationError(
                f"Stock for {v.sku!r} must not be negative",
                field="variants",
            ))

    return Ok(draft)


def validate_category_draft(draft: CategoryDraft) -> Result[CategoryDraft, ValidationError]:
    for problem in (
        _required(draft.name, "name", "Name"),
        _required(draft.slug, "slug", "Slug"),
    ):
        if problem is not None:
            return Error(problem)
    if draft.slug != slugify(draft.slug):
        return Error(ValidationError(
            "Slug may only contain lowercase letters, digits and dashes",
            field="slug",
        ))
    return Ok(draft)


__all__ = ("slugify", "validate_product_draft", "validate_category_draft")
