"""
Idempotency types — replay records for exactly-once mutations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any

# ═══════════════════════════════════════════════════════════════════════════════
# Record State
# ═══════════════════════════════════════════════════════════════════════════════


class RecordState(Enum):
    """
    Lifecycle:
        PENDING → COMPLETED (success, replayed on retry)
                → FAILED (kept only when the policy persists failures)
                → (deleted, so the request may run again)
    """

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Record
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IdempotencyRecord[T]:
    """
    input_hash: fingerprint of the request that claimed the key.
    A retry carrying a different fingerprint is a key collision.
    """

    key: str
    state: RecordState
    value: T | None
    error: Any
    created_at: datetime
    expires_at: datetime | None
    input_hash: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now()) > self.expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Replayed[T]:
    """Operation value plus whether it came from a stored record."""

    value: T
    replayed: bool
    key: str


__all__ = ("RecordState", "IdempotencyRecord", "Replayed")
