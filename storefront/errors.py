"""
Error taxonomy.

Errors are values: they travel inside Result.Error and are never raised for
expected failures.

    ValidationError  — bad input or a missing selection, fixable by the user
    NotFoundError    — unknown slug / id
    ConflictError    — detected at the storage boundary (stock gone,
                       usage cap reached, status changed underneath us)
    TransientError   — storage unavailable; reads may be retried
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class ValidationError:
    message: str
    field: str | None = None
    reason: Enum | None = None

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class NotFoundError:
    entity: str
    key: str

    @property
    def message(self) -> str:
        return f"{self.entity} {self.key!r} not found"

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class ConflictError:
    message: str
    entity: str | None = None
    key: str | None = None

    @property
    def retryable(self) -> bool:
        # Re-fetch and show "no longer available"; never retry blindly.
        return False


@dataclass(frozen=True, slots=True)
class TransientError:
    message: str
    cause: Exception | None = None

    @property
    def retryable(self) -> bool:
        return True


type StorefrontError = ValidationError | NotFoundError | ConflictError | TransientError


def out_of_stock(variant_id: str, requested: int, available: int | None = None) -> ConflictError:
    if available is None:
        text = f"Variant {variant_id} no longer has {requested} in stock"
    else:
        text = f"Variant {variant_id}: requested {requested}, only {available} left"
    return ConflictError(text, entity="variant", key=variant_id)


__all__ = (
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "StorefrontError",
    "out_of_stock",
)
