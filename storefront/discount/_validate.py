"""
Discount validation.

Checks short-circuit in order: exists and active, not expired, uses left,
minimum purchase. Validation never touches current_uses; redemption happens
once per placed order inside checkout.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from kungfu import Result, Ok, Error

from storefront.discount._types import (
    AppliedDiscount,
    DiscountCode,
    DiscountDraft,
    DiscountRejection,
)
from storefront.errors import ValidationError
from storefront.money import ZERO, format_money, percent_of


def normalize_code(code: str) -> str:
    """Codes match case-insensitively."""
    return code.strip().upper()


def _reject(reason: DiscountRejection, message: str) -> Error[ValidationError]:
    return Error(ValidationError(message, field="discount_code", reason=reason))


def check_discount(
    record: DiscountCode | None,
    subtotal: Decimal,
    now: datetime,
) -> Result[AppliedDiscount, ValidationError]:
    if record is None:
        return _reject(DiscountRejection.NOT_FOUND, "Invalid discount code")
    if not record.is_active:
        return _reject(DiscountRejection.INACTIVE, "Invalid discount code")
    if record.expiry_date is not None and record.expiry_date <= now:
        return _reject(DiscountRejection.EXPIRED, "This discount code has expired")
    if record.max_uses is not None and record.current_uses >= record.max_uses:
        return _reject(DiscountRejection.EXHAUSTED, "This discount code has reached its usage limit")
    if record.min_purchase is not None and subtotal < record.min_purchase:
        return _reject(
            DiscountRejection.MIN_PURCHASE_NOT_MET,
            f"Minimum purchase of {format_money(record.min_purchase)} required",
        )

    return Ok(AppliedDiscount(
        discount_id=record.id,
        code=record.code,
        percentage=record.percentage,
        quoted_amount=discount_amount(record.percentage, subtotal),
    ))


def discount_amount(percentage: Decimal, subtotal: Decimal) -> Decimal:
    """percentage x subtotal, never more than the subtotal and never negative."""
    if subtotal <= ZERO:
        return ZERO
    return min(percent_of(subtotal, percentage), subtotal)


def apply_discount(current: AppliedDiscount | None, new: AppliedDiscount) -> AppliedDiscount:
    """One code per cart: a new code replaces the old one."""
    return new


def validate_discount_draft(draft: DiscountDraft) -> Result[DiscountDraft, ValidationError]:
    if not draft.code.strip():
        return Error(ValidationError("Code is required", field="code"))
    if not (ZERO < draft.percentage <= Decimal("100")):
        return Error(ValidationError("Percentage must be between 0 and 100", field="percentage"))
    if draft.min_purchase is not None and draft.min_purchase < ZERO:
        return Error(ValidationError("Minimum purchase must not be negative", field="min_purchase"))
    if draft.max_uses is not None and draft.max_uses < 1:
        return Error(ValidationError("Max uses must be at least 1", field="max_uses"))
    return Ok(draft)


__all__ = (
    "normalize_code",
    "check_discount",
    "discount_amount",
    "apply_discount",
    "validate_discount_draft",
)
