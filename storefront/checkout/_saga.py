"""
Saga — ordered steps with compensation.

Steps run one after another. When one fails, the compensators recorded by the
steps that already succeeded run in reverse order.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from combinators import lift as L
from kungfu import LazyCoroResult, Result, Ok, Error

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[object]]
"""Receives the action's value and undoes it. An Error result counts as a failed undo."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    name: str
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    values: tuple[T, ...]
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaFailure[E]:
    error: E
    step_failed: int
    step_name: str
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


type Recorded = tuple[str, object, Compensator[object]]

# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    name: str,
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Create a compensated step.

        reserve = step(
            "reserve stock",
            LazyCoroResult(lambda: repo.decrement_stock(variant_id, 2)),
            compensate=lambda _: repo.restock(variant_id, 2),
        )
    """
    return SagaStep(name=name, action=action, compensate=compensate)


def from_async[T, E](
    name: str,
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """Step from a plain coroutine function; exceptions become errors via on_error."""
    return SagaStep(
        name=name,
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════


async def run_compensators(recorded: Sequence[Recorded]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    run = 0
    failed = 0

    for name, value, undo in reversed(recorded):
        try:
            outcome = await undo(value)
        except Exception:
            logger.exception("compensation for %r raised", name)
            failed += 1
            continue
        match outcome:
            case Error(err):
                logger.error("compensation for %r failed: %s", name, err)
                failed += 1
            case _:
                run += 1

    return run, failed


async def run_saga[T, E](
    steps: Sequence[SagaStep[T, E]],
) -> Result[SagaResult[T], SagaFailure[E]]:
    """
    Execute steps in order with rollback on the first failure.

        match await run_saga([reserve, redeem, create]):
            case Ok(done):
                order = done.values[-1]
            case Error(failure):
                log(failure.step_name, failure.rollback_complete)
    """
    recorded: list[Recorded] = []
    values: list[T] = []

    for index, s in enumerate(steps, start=1):
        match await s.action:
            case Ok(value):
                values.append(value)
                if s.compensate is not None:
                    recorded.append((s.name, value, s.compensate))  # type: ignore[arg-type]
            case Error(error):
                logger.warning("saga step %d (%s) failed; rolling back %d", index, s.name, len(recorded))
                run, failed = await run_compensators(recorded)
                return Error(SagaFailure(
                    error=error,
                    step_failed=index,
                    step_name=s.name,
                    compensators_run=run,
                    compensators_failed=failed,
                ))

    return Ok(SagaResult(
        values=tuple(values),
        steps_executed=len(steps),
        compensators_recorded=len(recorded),
    ))


__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaFailure",
    "step",
    "from_async",
    "run_compensators",
    "run_saga",
)
