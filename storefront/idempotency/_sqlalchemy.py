"""
SQLAlchemy idempotency store.

Values are stored as text; the checkout stores the created order id and the
caller reloads the order on replay.

    store = SQLAlchemyStore(session_factory)
    executor = I.idempotent(op).key(key_fn).store(store).build()
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from storefront.errors import TransientError
from storefront.idempotency._types import IdempotencyRecord, RecordState
from storefront.storage._tables import IdempotencyRow


class IdempotencyStatus:
    """Values of the status column."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_STATE = {
    IdempotencyStatus.PENDING: RecordState.PENDING,
    IdempotencyStatus.COMPLETED: RecordState.COMPLETED,
    IdempotencyStatus.FAILED: RecordState.FAILED,
}


def _expired(row: IdempotencyRow, now: datetime) -> bool:
    return row.expires_at is not None and now > row.expires_at


def _expiry(ttl: timedelta | None) -> datetime | None:
    return datetime.now() + ttl if ttl else None


class SQLAlchemyStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> Result[IdempotencyRecord[str] | None, TransientError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(IdempotencyRow, key)
                if row is None or _expired(row, datetime.now()):
                    return Ok(None)
                return Ok(self._to_record(row))
        except SQLAlchemyError as e:
            return Error(TransientError(f"Failed to get idempotency record: {e}", e))

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, TransientError]:
        now = datetime.now()
        try:
            async with self._session_factory() as session:
                existing = await session.get(IdempotencyRow, key)
                if existing is not None:
                    if not _expired(existing, now):
                        return Ok(False)
                    await session.delete(existing)
                    await session.flush()

                session.add(IdempotencyRow(
                    key=key,
                    status=IdempotencyStatus.PENDING,
                    input_hash=input_hash,
                    created_at=now,
                    expires_at=_expiry(ttl),
                ))
                await session.commit()
                return Ok(True)
        except IntegrityError:
            # Another request inserted the key first
            return Ok(False)
        except SQLAlchemyError as e:
            return Error(TransientError(f"Failed to set pending: {e}", e))

    async def set_completed(self, key: str, value: str, ttl: timedelta | None) -> Result[None, TransientError]:
        return await self._settle(key, IdempotencyStatus.COMPLETED, ttl, value=value)

    async def set_failed(self, key: str, error: Any, ttl: timedelta | None) -> Result[None, TransientError]:
        message = getattr(error, "message", None) or str(error)
        return await self._settle(key, IdempotencyStatus.FAILED, ttl, error=message)

    async def delete(self, key: str) -> Result[bool, TransientError]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(IdempotencyRow).where(IdempotencyRow.key == key))
                await session.commit()
                return Ok(result.rowcount > 0)  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            return Error(TransientError(f"Failed to delete idempotency record: {e}", e))

    async def purge_expired(self) -> Result[int, TransientError]:
        """Housekeeping: drop records whose TTL has passed."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(IdempotencyRow).where(
                        IdempotencyRow.expires_at.is_not(None),
                        IdempotencyRow.expires_at < datetime.now(),
                    )
                )
                await session.commit()
                return Ok(result.rowcount)  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            return Error(TransientError(f"Failed to purge idempotency records: {e}", e))

    async def _settle(
        self,
        key: str,
        status: str,
        ttl: timedelta | None,
        *,
        value: str | None = None,
        error: str | None = None,
    ) -> Result[None, TransientError]:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(select(IdempotencyRow).where(IdempotencyRow.key == key))
                ).scalar_one_or_none()
                if row is None:
                    return Error(TransientError(f"No pending record for key: {key}"))

                row.status = status
                row.value = value
                row.error = error
                row.expires_at = _expiry(ttl)
                await session.commit()
                return Ok(None)
        except SQLAlchemyError as e:
            return Error(TransientError(f"Failed to store result: {e}", e))

    @staticmethod
    def _to_record(row: IdempotencyRow) -> IdempotencyRecord[str]:
        return IdempotencyRecord(
            key=row.key,
            state=_STATE.get(row.status, RecordState.PENDING),
            value=row.value,
            error=row.error,
            created_at=row.created_at,
            expires_at=row.expires_at,
            input_hash=row.input_hash,
        )


__all__ = ("IdempotencyStatus", "SQLAlchemyStore")
