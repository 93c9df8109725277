from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import timedelta

from kungfu import LazyCoroResult, Ok, Error
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import idempotency as I
from storefront.errors import ConflictError, StorefrontError, TransientError, ValidationError

from tests.factories import err, ok


@dataclass
class Operation:
    """Echoes its input; fails while `failures` has entries left."""

    failures: list[StorefrontError | Exception] = field(default_factory=list)
    calls: int = 0

    def __call__(self, value: str) -> LazyCoroResult[str, StorefrontError]:
        async def execute():
            self.calls += 1
            if self.failures:
                problem = self.failures.pop(0)
                if isinstance(problem, Exception):
                    raise problem
                return Error(problem)
            return Ok(f"done:{value}")

        return LazyCoroResult(execute)


def _executor(op: Operation, store: I.Store[str] | None = None, policy: I.Policy = I.Policy()):
    return (
        I.idempotent(op)
        .key(lambda value: f"k:{value}")
        .store(store if store is not None else I.MemoryStore[str]())
        .policy(policy)
        .build()
    )


async def test_second_run_replays_without_calling_again() -> None:
    op = Operation()
    executor = _executor(op)

    first = ok(await executor.run("a"))
    second = ok(await executor.run("a"))

    assert (first.value, first.replayed) == ("done:a", False)
    assert (second.value, second.replayed) == ("done:a", True)
    assert second.key == "k:a"
    assert op.calls == 1


async def test_pending_key_fails_fast() -> None:
    store = I.MemoryStore[str]()
    ok(await store.set_pending("k:a", None))

    problem = err(await _executor(Operation(), store).run("a"))

    assert isinstance(problem, ConflictError)
    assert problem.message == "Request 'k:a' is already being processed"


async def test_pending_key_can_wait_for_the_first_attempt() -> None:
    store = I.MemoryStore[str]()
    ok(await store.set_pending("k:a", None))
    policy = replace(I.Policy().with_on_pending(I.WAIT), poll_interval=0.01)

    async def finish_first() -> None:
        await asyncio.sleep(0.03)
        await store.set_completed("k:a", "first", None)

    finishing = asyncio.create_task(finish_first())
    outcome = ok(await _executor(Operation(), store, policy).run("a"))
    await finishing

    assert (outcome.value, outcome.replayed) == ("first", True)


async def test_same_key_for_a_different_request_is_a_conflict() -> None:
    op = Operation()
    executor = (
        I.idempotent(op)
        .key(lambda _: "checkout:1")
        .fingerprint(lambda value: value)
        .build()
    )

    ok(await executor.run("a"))
    problem = err(await executor.run("b"))

    assert isinstance(problem, ConflictError)
    assert "different request" in problem.message
    assert op.calls == 1


async def test_failures_free_the_key_by_default() -> None:
    op = Operation(failures=[ValidationError("Your cart is empty")])
    executor = _executor(op)

    assert err(await executor.run("a")).message == "Your cart is empty"
    assert ok(await executor.run("a")).replayed is False
    assert op.calls == 2


async def test_failures_can_be_replayed() -> None:
    op = Operation(failures=[ValidationError("Your cart is empty")])
    executor = _executor(op, policy=I.Policy().with_store_failed())

    err(await executor.run("a"))
    problem = err(await executor.run("a"))

    assert problem == ValidationError("Your cart is empty")
    assert op.calls == 1


async def test_exception_becomes_transient_and_releases_the_key() -> None:
    store = I.MemoryStore[str]()
    op = Operation(failures=[RuntimeError("socket closed")])

    problem = err(await _executor(op, store).run("a"))

    assert isinstance(problem, TransientError)
    assert ok(await store.get("k:a")) is None


async def test_expired_records_read_as_missing() -> None:
    store = I.MemoryStore[str]()
    ok(await store.set_pending("k:a", timedelta(seconds=-1)))

    assert ok(await store.get("k:a")) is None
    assert ok(await store.set_pending("k:a", None)) is True


def test_policy_ttl() -> None:
    assert I.Policy().with_ttl(hours=1, minutes=30).ttl == timedelta(minutes=90)
    assert I.Policy().with_ttl(seconds=0).ttl is None


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy store
# ═══════════════════════════════════════════════════════════════════════════════


async def test_sqlalchemy_store_lifecycle(session_factory: async_sessionmaker[AsyncSession]) -> None:
    store = I.SQLAlchemyStore(session_factory)

    assert ok(await store.set_pending("k:a", timedelta(hours=1), "hash-1")) is True
    assert ok(await store.set_pending("k:a", timedelta(hours=1))) is False

    pending = ok(await store.get("k:a"))
    assert pending is not None
    assert pending.state is I.RecordState.PENDING
    assert pending.input_hash == "hash-1"

    ok(await store.set_completed("k:a", "order-1", timedelta(hours=1)))
    done = ok(await store.get("k:a"))
    assert done is not None
    assert (done.state, done.value) == (I.RecordState.COMPLETED, "order-1")

    assert ok(await store.delete("k:a")) is True
    assert ok(await store.get("k:a")) is None


async def test_sqlalchemy_store_expiry_and_purge(session_factory: async_sessionmaker[AsyncSession]) -> None:
    store = I.SQLAlchemyStore(session_factory)
    ok(await store.set_pending("old", timedelta(seconds=-1)))
    ok(await store.set_pending("fresh", timedelta(hours=1)))

    assert ok(await store.get("old")) is None
    assert ok(await store.purge_expired()) == 1
    assert ok(await store.get("fresh")) is not None


async def test_sqlalchemy_store_backs_the_executor(session_factory: async_sessionmaker[AsyncSession]) -> None:
    op = Operation()
    executor = _executor(op, I.SQLAlchemyStore(session_factory))

    ok(await executor.run("a"))
    again = ok(await executor.run("a"))

    assert (again.value, again.replayed) == ("done:a", True)
    assert op.calls == 1
