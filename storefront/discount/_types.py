"""
Discount types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum, auto


class DiscountRejection(Enum):
    """Why a code was refused. Checked in this order."""

    NOT_FOUND = auto()
    INACTIVE = auto()
    EXPIRED = auto()
    EXHAUSTED = auto()
    MIN_PURCHASE_NOT_MET = auto()


@dataclass(frozen=True, slots=True)
class DiscountCode:
    """
    Stored discount code.

    percentage is a whole percent (20 means 20% off).
    """

    id: str
    code: str
    percentage: Decimal
    min_purchase: Decimal | None = None
    max_uses: int | None = None
    current_uses: int = 0
    expiry_date: datetime | None = None
    is_active: bool = True

    @property
    def uses_left(self) -> int | None:
        if self.max_uses is None:
            return None
        return max(0, self.max_uses - self.current_uses)


@dataclass(frozen=True, slots=True)
class DiscountDraft:
    code: str
    percentage: Decimal
    min_purchase: Decimal | None = None
    max_uses: int | None = None
    expiry_date: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class AppliedDiscount:
    """
    A code attached to a cart.

    quoted_amount is the discount at validation time. Totals recompute the
    amount from percentage whenever the subtotal changes.
    """

    discount_id: str
    code: str
    percentage: Decimal
    quoted_amount: Decimal = Decimal("0")


__all__ = (
    "DiscountRejection",
    "DiscountCode",
    "DiscountDraft",
    "AppliedDiscount",
)
