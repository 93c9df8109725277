"""
Idempotency — exactly-once execution of mutations keyed by a client token.

    from storefront import idempotency as I

    executor = (
        I.idempotent(place_order)
        .key(lambda req: f"checkout:{req.key}")
        .store(I.SQLAlchemyStore(session_factory))
        .policy(I.Policy().with_ttl(hours=24))
        .build()
    )

    match await executor.run(request):
        case Ok(r): r.value, r.replayed
        case Error(e): ...   # ConflictError while the first attempt is running
"""

from storefront.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    Replayed,
)
from storefront.idempotency._store import Store, MemoryStore
from storefront.idempotency._policy import OnPending, FAIL, WAIT, Policy
from storefront.idempotency._builder import (
    idempotent,
    Idempotent,
    IdempotentExecutor,
)
from storefront.idempotency._sqlalchemy import IdempotencyStatus, SQLAlchemyStore

__all__ = (
    # Types
    "RecordState",
    "IdempotencyRecord",
    "Replayed",
    # Store
    "Store",
    "MemoryStore",
    "IdempotencyStatus",
    "SQLAlchemyStore",
    # Policy
    "OnPending",
    "FAIL",
    "WAIT",
    "Policy",
    # Builder
    "idempotent",
    "Idempotent",
    "IdempotentExecutor",
)
