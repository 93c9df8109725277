"""
Order types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from storefront._types import OrderId, ProductId, UserId, VariantId


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    COD = "cod"

    @property
    def label(self) -> str:
        return "Cash on delivery"


@dataclass(frozen=True, slots=True)
class CustomerDetails:
    """Contact/address captured at order time; later profile edits never touch it."""

    name: str
    phone: str
    address: str
    email: str | None = None
    city: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True, slots=True)
class OrderItem:
    """Frozen snapshot of what was bought."""

    id: str
    product_id: ProductId | None
    variant_id: VariantId | None
    product_name: str
    price_at_purchase: Decimal
    quantity: int
    size: str | None = None
    color: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.price_at_purchase * self.quantity


@dataclass(frozen=True, slots=True)
class Order:
    id: OrderId
    order_number: str
    customer: CustomerDetails
    subtotal: Decimal
    discount_amount: Decimal
    shipping: Decimal
    total_amount: Decimal
    items: tuple[OrderItem, ...]
    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.COD
    user_id: UserId | None = None
    discount_code: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)


@dataclass(frozen=True, slots=True)
class TimelineStep:
    status: OrderStatus
    label: str
    done: bool
    current: bool = False


@dataclass(frozen=True, slots=True)
class OrderQuery:
    """Admin order listing filters. start/end bound created_at inclusively."""

    user_id: UserId | None = None
    status: OrderStatus | None = None
    start: datetime | None = None
    end: datetime | None = None


__all__ = (
    "OrderStatus",
    "PaymentMethod",
    "CustomerDetails",
    "OrderItem",
    "Order",
    "TimelineStep",
    "OrderQuery",
)
