"""
Read policy — bounded retry for idempotent reads.

Retry itself is combinators' `flow(...).retry(...)`; Retry only carries the
settings. Mutations are never retried: a second attempt could decrement
stock or redeem a discount twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from combinators import flow
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)


class RetryOn(Protocol):
    def __call__(self, err: StorefrontError) -> bool: ...


def _retryable(err: StorefrontError) -> bool:
    return err.retryable


@dataclass(frozen=True, slots=True)
class Retry:
    """Retry settings applied via combinators.flow().retry(...)."""

    times: int = 3
    delay_seconds: float = 0.1
    retry_on: RetryOn = _retryable


def retrying[T](
    make: Callable[[], LazyCoroResult[T, StorefrontError]],
    policy: Retry,
) -> LazyCoroResult[T, StorefrontError]:
    """
    Re-run a read while it fails with an error policy.retry_on accepts.

    Any other outcome (a value, or an error such as NotFoundError) is
    settled on the first attempt: it travels through the retry as an Ok
    and is unwrapped afterwards.
    """

    def attempt() -> LazyCoroResult[Result[T, StorefrontError], StorefrontError]:
        async def execute() -> Result[Result[T, StorefrontError], StorefrontError]:
            match await make():
                case Error(err) if policy.retry_on(err):
                    logger.warning("read failed, may retry: %s", err.message)
                    return Error(err)
                case settled:
                    return Ok(settled)

        return LazyCoroResult(execute)

    async def execute() -> Result[T, StorefrontError]:
        retried = flow(attempt()).retry(times=policy.times, delay_seconds=policy.delay_seconds).compile()
        match await retried:
            case Ok(settled):
                return settled
            case Error(err):
                return Error(err)

    return LazyCoroResult(execute)


__all__ = ("RetryOn", "Retry", "retrying")
