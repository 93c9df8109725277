"""
Line-item operations — pure functions over a cart's lines.

Every operation keeps at most one line per variant. Zero is never a stored
quantity: non-positive quantities are rejected and removal is explicit.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import uuid4

from kungfu import Result, Ok, Error

from storefront._types import LineId, ProductId, VariantId
from storefront.cart._types import CartLineItem, OwnerKey
from storefront.errors import NotFoundError, StorefrontError, ValidationError

type Lines = tuple[CartLineItem, ...]


def new_line_id() -> LineId:
    return uuid4().hex


def _check_quantity(quantity: int) -> ValidationError | None:
    if quantity < 1:
        return ValidationError("Quantity must be at least 1", field="quantity")
    return None


def _check_stock(quantity: int, stock: int | None) -> ValidationError | None:
    if stock is not None and quantity > stock:
        return ValidationError(f"Only {stock} left in stock", field="quantity")
    return None


def add_line(
    lines: Sequence[CartLineItem],
    owner: OwnerKey,
    product_id: ProductId,
    variant_id: VariantId,
    quantity: int,
    *,
    stock: int | None = None,
    now: datetime | None = None,
    make_id: Callable[[], LineId] = new_line_id,
) -> Result[Lines, StorefrontError]:
    """Add a variant, or grow the existing line for it."""
    if (problem := _check_quantity(quantity)) is not None:
        return Error(problem)

    for i, line in enumerate(lines):
        if line.variant_id == variant_id:
            combined = line.quantity + quantity
            if (problem := _check_stock(combined, stock)) is not None:
                return Error(problem)
            updated = list(lines)
            updated[i] = line.with_quantity(combined)
            return Ok(tuple(updated))

    if (problem := _check_stock(quantity, stock)) is not None:
        return Error(problem)

    line = CartLineItem(
        id=make_id(),
        owner=owner,
        product_id=product_id,
        variant_id=variant_id,
        quantity=quantity,
        created_at=now,
    )
    return Ok((*lines, line))


def remove_line(lines: Sequence[CartLineItem], line_id: LineId) -> Result[Lines, StorefrontError]:
    kept = tuple(line for line in lines if line.id != line_id)
    if len(kept) == len(lines):
        return Error(NotFoundError("cart line", line_id))
    return Ok(kept)


def change_quantity(
    lines: Sequence[CartLineItem],
    line_id: LineId,
    quantity: int,
    *,
    stock: int | None = None,
) -> Result[Lines, StorefrontError]:
    if (problem := _check_quantity(quantity)) is not None:
        return Error(problem)
    if (problem := _check_stock(quantity, stock)) is not None:
        return Error(problem)

    updated: list[CartLineItem] = []
    found = False
    for line in lines:
        if line.id == line_id:
            found = True
            updated.append(line.with_quantity(quantity))
        else:
            updated.append(line)

    if not found:
        return Error(NotFoundError("cart line", line_id))
    return Ok(tuple(updated))


def merge_lines(
    session_lines: Sequence[CartLineItem],
    user_lines: Sequence[CartLineItem],
    user: OwnerKey,
) -> Lines:
    """
    Fold an anonymous cart into the user's cart after sign-in.

    Quantities of the same variant are summed; every line ends up owned by
    the user.
    """
    merged: dict[VariantId, CartLineItem] = {
        line.variant_id: line.with_owner(user) for line in user_lines
    }
    for line in session_lines:
        existing = merged.get(line.variant_id)
        if existing is None:
            merged[line.variant_id] = line.with_owner(user)
        else:
            merged[line.variant_id] = existing.with_quantity(existing.quantity + line.quantity)
    return tuple(merged.values())


__all__ = (
    "Lines",
    "new_line_id",
    "add_line",
    "remove_line",
    "change_quantity",
    "merge_lines",
)
