"""
Idempotency builder — fluent API + executor.

    executor = (
        I.idempotent(place_order)
        .key(lambda req: f"checkout:{req.idempotency_key}")
        .fingerprint(lambda req: req.fingerprint)
        .store(store)
        .policy(I.Policy().with_ttl(hours=24))
        .build()
    )
    result = await executor.run(request)   # Result[Replayed[T], StorefrontError]

Flow for one key:

    record?  ── none ──────► claim ──► run operation ──► COMPLETED / delete
       │
       ├── COMPLETED ──────► replay stored value (fingerprint must match)
       ├── FAILED ─────────► replay stored error
       └── PENDING ── FAIL ► ConflictError
                    └ WAIT ► poll until settled
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.errors import (
    ConflictError,
    NotFoundError,
    StorefrontError,
    TransientError,
    ValidationError,
)
from storefront.idempotency._policy import OnPending, Policy
from storefront.idempotency._store import MemoryStore, Store
from storefront.idempotency._types import IdempotencyRecord, RecordState, Replayed

type KeyFn[K] = Callable[[K], str]
type Operation[K, T] = Callable[[K], LazyCoroResult[T, StorefrontError]]

_KNOWN_ERRORS = (ValidationError, NotFoundError, ConflictError, TransientError)


def _as_error(stored: Any) -> StorefrontError:
    if isinstance(stored, _KNOWN_ERRORS):
        return stored
    return ConflictError(f"Previous attempt failed: {stored}")


# ═══════════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Idempotent[K, T]:
    _operation: Operation[K, T]
    _key_fn: KeyFn[K] | None = None
    _fingerprint: KeyFn[K] | None = None
    _store: Store[T] | None = None
    _policy: Policy = Policy()

    def key(self, fn: KeyFn[K]) -> Idempotent[K, T]:
        return replace(self, _key_fn=fn)

    def fingerprint(self, fn: KeyFn[K]) -> Idempotent[K, T]:
        """Stable digest of the input; detects a key reused for a different request."""
        return replace(self, _fingerprint=fn)

    def store(self, s: Store[T]) -> Idempotent[K, T]:
        return replace(self, _store=s)

    def policy(self, p: Policy) -> Idempotent[K, T]:
        return replace(self, _policy=p)

    def build(self) -> IdempotentExecutor[K, T]:
        if self._key_fn is None:
            raise ValueError("key() is required")
        return IdempotentExecutor(
            operation=self._operation,
            key_fn=self._key_fn,
            fingerprint=self._fingerprint,
            store=self._store if self._store is not None else MemoryStore(),
            policy=self._policy,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Executor
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class IdempotentExecutor[K, T]:
    operation: Operation[K, T]
    key_fn: KeyFn[K]
    fingerprint: KeyFn[K] | None
    store: Store[T]
    policy: Policy

    def run(self, input_val: K) -> LazyCoroResult[Replayed[T], StorefrontError]:
        key = self.key_fn(input_val)
        input_hash = self.fingerprint(input_val) if self.fingerprint is not None else None

        async def execute() -> Result[Replayed[T], StorefrontError]:
            match await self.store.get(key):
                case Error(err):
                    return Error(err)
                case Ok(None):
                    return await self._execute_new(key, input_val, input_hash)
                case Ok(record):
                    return await self._settle_existing(record, input_hash)

        return LazyCoroResult(execute)

    async def invalidate(self, input_val: K) -> bool:
        match await self.store.delete(self.key_fn(input_val)):
            case Ok(deleted):
                return deleted
            case _:
                return False

    # ───────────────────────────────────────────────────────────────────────────

    async def _settle_existing(
        self,
        record: IdempotencyRecord[T],
        input_hash: str | None,
    ) -> Result[Replayed[T], StorefrontError]:
        if (
            input_hash is not None
            and record.input_hash is not None
            and record.input_hash != input_hash
        ):
            return Error(ConflictError(
                f"Idempotency key {record.key!r} was already used for a different request",
            ))

        match record.state:
            case RecordState.COMPLETED:
                return Ok(Replayed(value=record.value, replayed=True, key=record.key))  # type: ignore[arg-type]
            case RecordState.FAILED:
                return Error(_as_error(record.error))
            case RecordState.PENDING:
                if self.policy.on_pending is OnPending.WAIT:
                    return await self._wait(record.key)
                return Error(ConflictError(
                    f"Request {record.key!r} is already being processed",
                ))

    async def _wait(self, key: str) -> Result[Replayed[T], StorefrontError]:
        timeout = self.policy.wait_timeout.total_seconds()
        elapsed = 0.0

        while elapsed < timeout:
            await asyncio.sleep(self.policy.poll_interval)
            elapsed += self.policy.poll_interval

            match await self.store.get(key):
                case Error(err):
                    return Error(err)
                case Ok(None):
                    return Error(TransientError(f"Request {key!r} was abandoned; retry it"))
                case Ok(record) if record.state is RecordState.COMPLETED:
                    return Ok(Replayed(value=record.value, replayed=True, key=key))  # type: ignore[arg-type]
                case Ok(record) if record.state is RecordState.FAILED:
                    return Error(_as_error(record.error))
                case _:
                    continue

        return Error(TransientError(f"Timed out waiting for request {key!r}"))

    async def _execute_new(
        self,
        key: str,
        input_val: K,
        input_hash: str | None,
    ) -> Result[Replayed[T], StorefrontError]:
        match await self.store.set_pending(key, self.policy.ttl, input_hash):
            case Error(err):
                return Error(err)
            case Ok(False):
                # Lost the race to another request with the same key
                match await self.store.get(key):
                    case Ok(record) if record is not None:
                        return await self._settle_existing(record, input_hash)
                    case _:
                        return Error(ConflictError(f"Request {key!r} is already being processed"))
            case Ok(True):
                pass

        try:
            result = await self.operation(input_val)
        except Exception as e:
            await self.store.delete(key)
            return Error(TransientError(f"Operation failed: {e}", e))

        match result:
            case Ok(value):
                match await self.store.set_completed(key, value, self.policy.ttl):
                    case Error(err):
                        return Error(err)
                    case Ok(_):
                        return Ok(Replayed(value=value, replayed=False, key=key))
            case Error(err):
                if self.policy.persist_failed:
                    await self.store.set_failed(key, err, self.policy.failed_ttl or self.policy.ttl)
                else:
                    await self.store.delete(key)
                return Error(err)


# ═══════════════════════════════════════════════════════════════════════════════
# idempotent() — Entry Point
# ═══════════════════════════════════════════════════════════════════════════════


def idempotent[K, T](operation: Operation[K, T]) -> Idempotent[K, T]:
    return Idempotent(_operation=operation)


__all__ = ("Idempotent", "IdempotentExecutor", "idempotent")
