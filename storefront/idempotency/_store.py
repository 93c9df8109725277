"""
Replay storage: the Store protocol and a process-local MemoryStore.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Protocol

from kungfu import Result, Ok, Error

from storefront.errors import TransientError
from storefront.idempotency._types import IdempotencyRecord, RecordState

# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Store[T](Protocol):
    """
    All methods return Result; backend failures surface as TransientError.
    """

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, TransientError]:
        """Ok(None) when missing or expired."""
        ...

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, TransientError]:
        """
        Claim the key.

        Ok(True) if claimed, Ok(False) if a live record already holds it.
        Must be atomic.
        """
        ...

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, TransientError]:
        ...

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, TransientError]:
        ...

    async def delete(self, key: str) -> Result[bool, TransientError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


def _deadline(ttl: timedelta | None) -> datetime | None:
    return datetime.now() + ttl if ttl else None


class MemoryStore[T]:
    """
    Single-process store. Records do not survive a restart.
    """

    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord[T]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str, now: datetime) -> IdempotencyRecord[T] | None:
        record = self._records.get(key)
        if record is not None and record.is_expired(now):
            del self._records[key]
            return None
        return record

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, TransientError]:
        async with self._lock:
            return Ok(self._live(key, datetime.now()))

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, TransientError]:
        async with self._lock:
            now = datetime.now()
            if self._live(key, now) is not None:
                return Ok(False)
            self._records[key] = IdempotencyRecord(
                key=key,
                state=RecordState.PENDING,
                value=None,
                error=None,
                created_at=now,
                expires_at=now + ttl if ttl else None,
                input_hash=input_hash,
            )
            return Ok(True)

    async def _settle(self, key: str, ttl: timedelta | None, **changes: Any) -> Result[None, TransientError]:
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return Error(TransientError(f"no claim recorded for {key!r}"))
            self._records[key] = replace(record, expires_at=_deadline(ttl), **changes)
            return Ok(None)

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, TransientError]:
        return await self._settle(key, ttl, state=RecordState.COMPLETED, value=value)

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, TransientError]:
        return await self._settle(key, ttl, state=RecordState.FAILED, error=error)

    async def delete(self, key: str) -> Result[bool, TransientError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)


__all__ = ("Store", "MemoryStore")
