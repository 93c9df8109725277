"""
Idempotency policy.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto


class OnPending(Enum):
    """
    A retry arrives while the first attempt is still running.

    FAIL: ConflictError immediately (double-submitted checkout form).
    WAIT: poll until the first attempt settles, then replay its result.
    """

    FAIL = auto()
    WAIT = auto()


FAIL = OnPending.FAIL
WAIT = OnPending.WAIT


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Immutable; each with_* returns a new Policy.

        Policy().with_ttl(hours=24).with_on_pending(WAIT)

    Failures are not persisted by default, so a failed request may be retried
    under the same key.
    """

    ttl: timedelta | None = None
    on_pending: OnPending = OnPending.FAIL
    wait_timeout: timedelta = timedelta(seconds=10)
    poll_interval: float = 0.1
    persist_failed: bool = False
    failed_ttl: timedelta | None = None

    def with_ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        if delta is not None:
            return replace(self, ttl=delta)
        total = (seconds or 0) + (minutes or 0) * 60 + (hours or 0) * 3600
        return replace(self, ttl=timedelta(seconds=total) if total > 0 else None)

    def with_on_pending(self, strategy: OnPending) -> Policy:
        return replace(self, on_pending=strategy)

    def with_wait_timeout(self, *, seconds: float) -> Policy:
        return replace(self, wait_timeout=timedelta(seconds=seconds))

    def with_store_failed(self, store: bool = True, *, ttl_seconds: float | None = None) -> Policy:
        failed_ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        return replace(self, persist_failed=store, failed_ttl=failed_ttl)


__all__ = ("OnPending", "FAIL", "WAIT", "Policy")
