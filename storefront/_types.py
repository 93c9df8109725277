"""
Core types for storefront.

Re-exports from kungfu + shop-wide type aliases.
"""

from __future__ import annotations

from typing import Never
from decimal import Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

type Pure[T] = Lazy[T, Never]
"""Lazy computation that cannot fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Identifiers & Money
# ═══════════════════════════════════════════════════════════════════════════════

type ProductId = str
type VariantId = str
type CategoryId = str
type OrderId = str
type LineId = str
type UserId = str
type SessionId = str

type Money = Decimal
"""Exact currency amount. Never a float."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Aliases
    "Lazy",
    "Pure",
    "ProductId",
    "VariantId",
    "CategoryId",
    "OrderId",
    "LineId",
    "UserId",
    "SessionId",
    "Money",
)
