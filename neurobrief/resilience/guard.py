"""Compose per-call timeout, retry and circuit breaker around one external call."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .circuit_breaker import CircuitBreaker
from .result import Err, Ok, Result
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, Sleep, is_retryable, with_retry

T = TypeVar("T")


async def guarded_call(
    fn: Callable[[], Awaitable[T]],
    *,
    breaker: CircuitBreaker,
    retry: RetryConfig = DEFAULT_RETRY_CONFIG,
    timeout_s: float | None = 30.0,
    label: str = "call",
    sleep: Sleep = asyncio.sleep,
    retryable: Callable[[Exception], bool] = is_retryable,
) -> Result[T, Exception]:
    """
    Call ``fn`` through ``breaker`` with retries and a timeout per attempt.

    One exhausted retry sequence counts as a single breaker failure. A timed
    out attempt raises ``TimeoutError`` and is retried like any other error.
    An open breaker fails fast without calling ``fn``.

    Returns:
        Ok with the value, or Err with the last error. Never raises.
    """

    async def attempt(_: int) -> T:
        if timeout_s is None:
            return await fn()
        async with asyncio.timeout(timeout_s):
            return await fn()

    async def retried() -> T:
        match await with_retry(
            attempt, retry, label=label, sleep=sleep, retryable=retryable
        ):
            case Ok(value):
                return value
            case Err(error):
                raise error

    return await breaker.execute(retried)


@dataclass
class CallPolicy:
    """How one class of external calls is guarded and paced."""

    breaker: CircuitBreaker
    retry: RetryConfig = DEFAULT_RETRY_CONFIG
    timeout_s: float | None = 30.0
    delay_s: float = 0.0
    sleep: Sleep = asyncio.sleep

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        label: str,
        retryable: Callable[[Exception], bool] = is_retryable,
    ) -> Result[T, Exception]:
        return await guarded_call(
            fn,
            breaker=self.breaker,
            retry=self.retry,
            timeout_s=self.timeout_s,
            label=label,
            sleep=self.sleep,
            retryable=retryable,
        )

    async def pause(self) -> None:
        """Inter-request delay between sequential calls."""
        if self.delay_s > 0:
            await self.sleep(self.delay_s)
