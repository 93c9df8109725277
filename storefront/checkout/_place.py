"""
Order placement — cart to order as one compensated saga.

    1. reserve stock for every line      (undo: restock)
    2. redeem the discount code, if any  (undo: release)
    3. create the order                  (undo: delete)
    4. clear the cart

Stock and redemption are conditional updates in storage, so two shoppers
racing for the last unit cannot both succeed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from combinators import lift as L
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.cart import OwnerKey, PricedLine, ShippingRule, compute_totals
from storefront.catalog import PLACEHOLDER_IMAGE
from storefront.checkout._form import CheckoutForm, validate_form
from storefront.checkout._saga import SagaStep, run_saga, step
from storefront.discount import AppliedDiscount, DiscountCode, DiscountRejection, check_discount
from storefront.errors import ConflictError, StorefrontError, TransientError, ValidationError
from storefront.orders import (
    Order,
    OrderStatus,
    PaymentMethod,
    generate_order_number,
    snapshot_items,
)
from storefront.storage import Storage

logger = logging.getLogger(__name__)

type Outcome[T] = Result[T, StorefrontError]


def _guarded[T](name: str, call: Callable[[], Awaitable[Outcome[T]]]) -> LazyCoroResult[T, StorefrontError]:
    """Storage call as a saga action; an exception becomes a TransientError so earlier steps are undone."""
    caught = L.catching_async(call, on_error=lambda e: TransientError(f"{name} failed: {e}", e))

    async def execute() -> Outcome[T]:
        match await caught:
            case Ok(outcome):
                return outcome
            case Error(e):
                return Error(e)

    return LazyCoroResult(execute)


def _reserve(storage: Storage, line: PricedLine) -> SagaStep[object, StorefrontError]:
    name = f"reserve {line.variant_id} x{line.quantity}"
    return step(
        name,
        _guarded(name, lambda: storage.decrement_stock(line.variant_id, line.quantity)),
        compensate=lambda _: storage.restock(line.variant_id, line.quantity),
    )


def _redeem(storage: Storage, applied: AppliedDiscount) -> SagaStep[object, StorefrontError]:
    name = f"redeem {applied.code}"
    return step(
        name,
        _guarded(name, lambda: storage.redeem_discount(applied.discount_id)),
        compensate=lambda _: storage.release_discount(applied.discount_id),
    )


def _create(storage: Storage, order: Order) -> SagaStep[object, StorefrontError]:
    name = f"create {order.order_number}"
    return step(
        name,
        _guarded(name, lambda: storage.create_order(order)),
        compensate=lambda created: storage.delete_order(created.id),  # type: ignore[attr-defined]
    )


def _clear(storage: Storage, owner: OwnerKey) -> SagaStep[object, StorefrontError]:
    return step("clear cart", _guarded("clear cart", lambda: storage.clear_cart(owner)))


# Codes attached to a cart can be spent, expired or switched off by someone
# else between quoting and checkout.
_GONE = frozenset({DiscountRejection.INACTIVE, DiscountRejection.EXPIRED, DiscountRejection.EXHAUSTED})


async def _discount_record(
    storage: Storage,
    owner: OwnerKey,
    code: str | None,
) -> Outcome[tuple[DiscountCode | None, bool]]:
    """
    The code typed on the form wins over the one applied to the cart.
    The flag is True when the record came from the cart.
    """
    if code:
        match await storage.fetch_discount(code):
            case Ok(None):
                return Error(ValidationError("Invalid discount code", field="discount_code"))
            case Ok(record):
                return Ok((record, False))
            case Error(e):
                return Error(e)
    match await storage.get_cart_discount(owner):
        case Ok(record):
            return Ok((record, True))
        case Error(e):
            return Error(e)


def _check_code(record: DiscountCode, from_cart: bool, subtotal: Decimal, now: datetime) -> Outcome[AppliedDiscount]:
    match check_discount(record, subtotal, now):
        case Error(ValidationError(reason=reason)) if from_cart and reason in _GONE:
            return Error(ConflictError("This discount code is no longer available", entity="discount", key=record.id))
        case other:
            return other


def build_order(
    owner: OwnerKey,
    form: CheckoutForm,
    lines: list[PricedLine],
    applied: AppliedDiscount | None,
    rule: ShippingRule,
    now: datetime,
    make_id: Callable[[], str] = lambda: uuid4().hex,
) -> Order:
    totals = compute_totals(lines, applied, rule).rounded()
    return Order(
        id=make_id(),
        order_number=generate_order_number(now),
        customer=form.customer(),
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        shipping=totals.shipping,
        total_amount=totals.total,
        items=snapshot_items(lines, make_id),
        status=OrderStatus.PENDING,
        payment_method=PaymentMethod(form.payment_method),
        user_id=owner.user_id,
        discount_code=applied.code if applied is not None else None,
        notes=form.notes,
        created_at=now,
        updated_at=now,
    )


async def place_order(
    storage: Storage,
    owner: OwnerKey,
    form: CheckoutForm,
    *,
    rule: ShippingRule = ShippingRule(),
    now: datetime | None = None,
    placeholder: str = PLACEHOLDER_IMAGE,
) -> Outcome[Order]:
    now = now or datetime.now()

    match validate_form(form):
        case Error(e):
            return Error(e)
        case Ok(form):
            pass

    match await storage.fetch_cart(owner):
        case Error(e):
            return Error(e)
        case Ok(entries):
            pass

    if not entries:
        return Error(ValidationError("Your cart is empty"))

    inactive = next((e for e in entries if not e.product.is_active), None)
    if inactive is not None:
        return Error(ValidationError(
            f"{inactive.product.name} is no longer available",
            field="cart",
        ))

    lines = [e.priced(placeholder) for e in entries]
    subtotal = compute_totals(lines, None, rule).subtotal

    applied: AppliedDiscount | None = None
    match await _discount_record(storage, owner, form.discount_code):
        case Error(e):
            return Error(e)
        case Ok((None, _)):
            pass
        case Ok((record, from_cart)):
            match _check_code(record, from_cart, subtotal, now):
                case Error(e):
                    return Error(e)
                case Ok(applied):
                    pass

    order = build_order(owner, form, lines, applied, rule, now)

    steps = [_reserve(storage, line) for line in lines]
    if applied is not None:
        steps.append(_redeem(storage, applied))
    steps.append(_create(storage, order))
    steps.append(_clear(storage, owner))
    created_at = len(steps) - 2

    match await run_saga(steps):
        case Ok(done):
            created = done.values[created_at]
            logger.info(
                "order %s placed for %s: %d items, total %s",
                order.order_number, owner, order.item_count, order.total_amount,
            )
            return Ok(created)  # type: ignore[arg-type]
        case Error(failure):
            if failure.rollback_complete:
                logger.warning("checkout for %s failed at %r: %s", owner, failure.step_name, failure.error)
            else:
                logger.error(
                    "checkout for %s failed at %r and %d compensations failed",
                    owner, failure.step_name, failure.compensators_failed,
                )
            return Error(failure.error)


__all__ = ("build_order", "place_order")
