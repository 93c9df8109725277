"""
Cache — best-effort read cache for catalog listings.

Admin edits show up once the entry expires (catalog refresh interval) or
when the mutation invalidates "products:*".
"""

from storefront.cache._types import Tier, LocalTier, CacheResult
from storefront.cache._builder import Cache, CacheExecutor, cache

__all__ = (
    "Tier",
    "LocalTier",
    "CacheResult",
    "Cache",
    "CacheExecutor",
    "cache",
)
