"""
Read-through cache over one or more tiers.

    listings = cache(listing_key, fetch_listing).tier(LocalTier(max_size=256)).build()
    match await listings.get(descriptor):
        case Ok(CacheResult(value=page, hit=hit)): ...

Tier failures are logged and skipped; a broken tier never fails a read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.cache._types import CacheResult, Tier
from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)

type KeyFn[K] = Callable[[K], str]
type Fetch[K, T] = Callable[[K], LazyCoroResult[T, StorefrontError]]


@dataclass(slots=True, frozen=True)
class Cache[K, T]:
    _key_fn: KeyFn[K]
    _fetch: Fetch[K, T]
    _tiers: tuple[Tier[T], ...] = ()

    def tier(self, t: Tier[T]) -> Cache[K, T]:
        """Tiers are consulted in the order they are added."""
        return replace(self, _tiers=(*self._tiers, t))

    def build(self) -> CacheExecutor[K, T]:
        return CacheExecutor(key_fn=self._key_fn, tiers=self._tiers, fetch=self._fetch)


@dataclass(slots=True, frozen=True)
class CacheExecutor[K, T]:
    key_fn: KeyFn[K]
    tiers: tuple[Tier[T], ...]
    fetch: Fetch[K, T]

    async def _lookup(self, cache_key: str) -> CacheResult[T] | None:
        for t in self.tiers:
            try:
                value = await t.get(cache_key)
            except Exception:
                logger.warning("cache tier %s failed reading %s", t.name, cache_key, exc_info=True)
                continue
            if value is not None:
                return CacheResult(value=value, hit=True, tier=t.name, ttl_remaining=t.ttl_remaining(cache_key))
        return None

    async def _fill(self, cache_key: str, value: T) -> None:
        for t in self.tiers:
            try:
                await t.set(cache_key, value)
            except Exception:
                logger.warning("cache tier %s failed writing %s", t.name, cache_key, exc_info=True)

    def get(self, key: K) -> LazyCoroResult[CacheResult[T], StorefrontError]:
        """On a miss the fetched value is written to every tier; fetch errors are not cached."""
        cache_key = self.key_fn(key)

        async def read() -> Result[CacheResult[T], StorefrontError]:
            if (cached := await self._lookup(cache_key)) is not None:
                return Ok(cached)
            match await self.fetch(key):
                case Ok(value):
                    await self._fill(cache_key, value)
                    return Ok(CacheResult(value=value, hit=False, tier=None, ttl_remaining=None))
                case Error(e):
                    return Error(e)

        return LazyCoroResult(read)

    async def invalidate(self, key: K) -> bool:
        cache_key = self.key_fn(key)
        removed = [await t.delete(cache_key) for t in self.tiers]
        return any(removed)

    async def invalidate_pattern(self, pattern: str) -> int:
        return sum([await t.delete_pattern(pattern) for t in self.tiers])


def cache[K, T](key: KeyFn[K], fetch: Fetch[K, T]) -> Cache[K, T]:
    return Cache(_key_fn=key, _fetch=fetch)


__all__ = ("Cache", "CacheExecutor", "cache")
