"""
Discount — code validation and amount computation.

    from storefront import discount as D

    match D.check_discount(record, subtotal, now):
        case Ok(applied): cart_discount = D.apply_discount(cart_discount, applied)
        case Error(e): print(e.message, e.reason)
"""

from storefront.discount._types import (
    DiscountRejection,
    DiscountCode,
    DiscountDraft,
    AppliedDiscount,
)
from storefront.discount._validate import (
    normalize_code,
    check_discount,
    discount_amount,
    apply_discount,
    validate_discount_draft,
)

__all__ = (
    "DiscountRejection",
    "DiscountCode",
    "DiscountDraft",
    "AppliedDiscount",
    "normalize_code",
    "check_discount",
    "discount_amount",
    "apply_discount",
    "validate_discount_draft",
)
