"""
Order lifecycle.

    pending ──► confirmed ──► shipped ──► delivered
       │            │
       └────────────┴──► cancelled

No forward skips. delivered and cancelled are terminal.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from types import MappingProxyType

from kungfu import Result, Ok, Error

from storefront.errors import ValidationError
from storefront.orders._types import Order, OrderStatus, TimelineStep

_TRANSITIONS: MappingProxyType[OrderStatus, frozenset[OrderStatus]] = MappingProxyType({
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
})

_PROGRESS = (
    (OrderStatus.PENDING, "Order placed"),
    (OrderStatus.CONFIRMED, "Confirmed"),
    (OrderStatus.SHIPPED, "Shipped"),
    (OrderStatus.DELIVERED, "Delivered"),
)


def allowed_transitions(status: OrderStatus) -> frozenset[OrderStatus]:
    return _TRANSITIONS[status]


def is_terminal(status: OrderStatus) -> bool:
    return not _TRANSITIONS[status]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _TRANSITIONS[current]


def check_transition(current: OrderStatus, target: OrderStatus) -> Result[OrderStatus, ValidationError]:
    if is_terminal(current):
        return Error(ValidationError(
            f"Order is {current.value}; no further status changes are allowed",
            field="status",
        ))
    if not can_transition(current, target):
        allowed = ", ".join(sorted(s.value for s in _TRANSITIONS[current]))
        return Error(ValidationError(
            f"Cannot move order from {current.value} to {target.value} (allowed: {allowed})",
            field="status",
        ))
    return Ok(target)


def transition(order: Order, target: OrderStatus, now: datetime) -> Result[Order, ValidationError]:
    match check_transition(order.status, target):
        case Ok(status):
            return Ok(replace(order, status=status, updated_at=now))
        case Error(e):
            return Error(e)


def timeline(status: OrderStatus) -> tuple[TimelineStep, ...]:
    """Progress shown on admin order detail and customer tracking."""
    if status is OrderStatus.CANCELLED:
        return (
            TimelineStep(OrderStatus.PENDING, "Order placed", done=True),
            TimelineStep(OrderStatus.CANCELLED, "Cancelled", done=True, current=True),
        )

    reached = [s for s, _ in _PROGRESS].index(status)
    return tuple(
        TimelineStep(s, label, done=i <= reached, current=i == reached)
        for i, (s, label) in enumerate(_PROGRESS)
    )


__all__ = (
    "allowed_transitions",
    "is_terminal",
    "can_transition",
    "check_transition",
    "transition",
    "timeline",
)
