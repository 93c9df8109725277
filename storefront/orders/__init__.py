"""
Orders — snapshot types and the status lifecycle.

    from storefront import orders as O

    match O.transition(order, O.OrderStatus.SHIPPED, now):
        case Ok(updated): ...
        case Error(e): print(e.message)   # e.g. pending -> shipped is a skip
"""

from storefront.orders._types import (
    OrderStatus,
    PaymentMethod,
    CustomerDetails,
    OrderItem,
    Order,
    TimelineStep,
    OrderQuery,
)
from storefront.orders._lifecycle import (
    allowed_transitions,
    is_terminal,
    can_transition,
    check_transition,
    transition,
    timeline,
)
from storefront.orders._create import (
    order_token,
    generate_order_number,
    snapshot_items,
)

__all__ = (
    "OrderStatus",
    "PaymentMethod",
    "CustomerDetails",
    "OrderItem",
    "Order",
    "TimelineStep",
    "OrderQuery",
    "allowed_transitions",
    "is_terminal",
    "can_transition",
    "check_transition",
    "transition",
    "timeline",
    "order_token",
    "generate_order_number",
    "snapshot_items",
)
