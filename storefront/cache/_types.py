"""
Cache types.
"""

from __future__ import annotations

import fnmatch
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

# ═══════════════════════════════════════════════════════════════════════════════
# Tier Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Tier[T](Protocol):
    """
    Cache tier protocol. Implement for other backends (Redis, ...).
    """

    @property
    def name(self) -> str:
        ...

    async def get(self, key: str) -> T | None:
        """None on miss or expiry."""
        ...

    async def set(self, key: str, value: T) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern. Returns count."""
        ...

    def ttl_remaining(self, key: str) -> timedelta | None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Local Tier — In-Memory LRU with TTL
# ═══════════════════════════════════════════════════════════════════════════════


class LocalTier[T]:
    """
    In-memory LRU tier. Entries older than ttl_seconds read as misses.

    Example:
        tier = LocalTier[Page](max_size=256, ttl_seconds=30)
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[T, float | None]] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> tuple[T, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> T | None:
        entry = self._live(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[0]

    async def set(self, key: str, value: T) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)

        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatch(k, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def ttl_remaining(self, key: str) -> timedelta | None:
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return timedelta(seconds=max(0.0, entry[1] - self._clock()))


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    value: T
    hit: bool
    tier: str | None
    ttl_remaining: timedelta | None


__all__ = ("Tier", "LocalTier", "CacheResult")
