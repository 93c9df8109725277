from __future__ import annotations

from kungfu import LazyCoroResult, Ok, Error

from storefront.checkout import from_async, run_saga, step

from tests.factories import err, ok


def _done(value: str) -> LazyCoroResult[str, str]:
    async def execute():
        return Ok(value)

    return LazyCoroResult(execute)


def _fail(error: str) -> LazyCoroResult[str, str]:
    async def execute():
        return Error(error)

    return LazyCoroResult(execute)


def _undo(log: list[str]):
    async def compensate(value: str):
        log.append(f"undo {value}")
        return Ok(None)

    return compensate


async def test_all_steps_succeed() -> None:
    log: list[str] = []

    done = ok(await run_saga([
        step("reserve", _done("a"), compensate=_undo(log)),
        step("redeem", _done("b"), compensate=_undo(log)),
        step("clear", _done("c")),
    ]))

    assert done.values == ("a", "b", "c")
    assert done.steps_executed == 3
    assert done.compensators_recorded == 2
    assert log == []


async def test_failure_rolls_back_in_reverse() -> None:
    log: list[str] = []

    failure = err(await run_saga([
        step("reserve", _done("a"), compensate=_undo(log)),
        step("redeem", _done("b"), compensate=_undo(log)),
        step("create", _fail("out of stock"), compensate=_undo(log)),
        step("clear", _done("d"), compensate=_undo(log)),
    ]))

    assert failure.error == "out of stock"
    assert (failure.step_failed, failure.step_name) == (3, "create")
    assert log == ["undo b", "undo a"]
    assert failure.compensators_run == 2
    assert failure.rollback_complete


async def test_failed_compensations_are_counted() -> None:
    log: list[str] = []

    async def raises(_: str):
        raise RuntimeError("db gone")

    async def refuses(_: str):
        return Error("locked")

    failure = err(await run_saga([
        step("a", _done("a"), compensate=_undo(log)),
        step("b", _done("b"), compensate=raises),
        step("c", _done("c"), compensate=refuses),
        step("d", _fail("boom")),
    ]))

    assert failure.compensators_run == 1
    assert failure.compensators_failed == 2
    assert not failure.rollback_complete
    assert log == ["undo a"]


async def test_first_step_failing_has_nothing_to_undo() -> None:
    failure = err(await run_saga([step("a", _fail("nope"))]))

    assert (failure.step_failed, failure.compensators_run, failure.compensators_failed) == (1, 0, 0)


async def test_from_async_turns_exceptions_into_errors() -> None:
    async def explode() -> str:
        raise ValueError("bad input")

    async def fine() -> str:
        return "ok"

    failure = err(await run_saga([from_async("boom", explode, on_error=lambda e: f"failed: {e}")]))
    done = ok(await run_saga([from_async("fine", fine, on_error=str)]))

    assert failure.error == "failed: bad input"
    assert done.values == ("ok",)
