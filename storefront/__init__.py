"""
storefront — catalog, cart, discounts and orders for a single-merchant shop.

    from storefront import catalog as K    # Variants, pricing, listing filters
    from storefront import cart as CT      # Lines and totals
    from storefront import orders as O     # Lifecycle and snapshots
    from storefront import Storefront      # Service facade
"""

from storefront import money
from storefront import errors
from storefront import catalog
from storefront import discount
from storefront import cart
from storefront import orders
from storefront import cache
from storefront import idempotency
from storefront import storage
from storefront import checkout
from storefront._types import (
    Lazy,
    Pure,
    Money,
    ProductId,
    VariantId,
    OrderId,
)
from storefront.config import Settings, get_settings
from storefront.errors import (
    StorefrontError,
    ValidationError,
    NotFoundError,
    ConflictError,
    TransientError,
)
from storefront.service import Storefront

__version__ = "0.1.0"

__all__ = (
    "money",
    "errors",
    "catalog",
    "discount",
    "cart",
    "orders",
    "cache",
    "idempotency",
    "storage",
    "checkout",
    "Lazy",
    "Pure",
    "Money",
    "ProductId",
    "VariantId",
    "OrderId",
    "Settings",
    "get_settings",
    "StorefrontError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "Storefront",
)
