"""Retry async operations with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from neurobrief.errors import ConfigurationError
from neurobrief.logging_config import get_logger

from .result import Err, Ok, Result

logger = get_logger("retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Retry behaviour for one class of calls."""

    max_attempts: int = 3
    base_delay_ms: int = 1_000
    max_delay_ms: int = 30_000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    rng: Callable[[], float] = random.random,
) -> int:
    """
    Backoff delay in milliseconds for a zero-indexed attempt.

    The capped exponential delay is scaled by a jitter factor in [0.5, 1.0]
    drawn from ``rng``.
    """
    exponential = base_delay_ms * 2**attempt
    capped = min(exponential, max_delay_ms)
    jitter = 0.5 + rng() * 0.5
    return int(capped * jitter)


def is_retryable(exc: Exception) -> bool:
    """Every error except missing configuration."""
    return not isinstance(exc, ConfigurationError)


async def with_retry(
    fn: Callable[[int], Awaitable[T]],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    *,
    label: str = "operation",
    sleep: Sleep = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    retryable: Callable[[Exception], bool] = is_retryable,
) -> Result[T, Exception]:
    """
    Call ``fn(attempt)`` until it succeeds or attempts run out.

    Args:
        fn: Async callable receiving the zero-indexed attempt number
        config: Attempt budget and backoff bounds
        label: Name used in log messages
        sleep: Awaitable sleep taking seconds (stubbed in tests)
        rng: Random source for jitter
        retryable: Predicate deciding whether an error is worth another attempt

    Returns:
        Ok with the first successful value, or Err with the last error.
        Never raises.
    """
    last_error: Exception = RuntimeError("No attempts made")

    for attempt in range(config.max_attempts):
        try:
            return Ok(await fn(attempt))
        except Exception as exc:
            last_error = exc

        if not retryable(last_error):
            logger.error(f"{label}: non-retryable error: {last_error}")
            return Err(last_error)

        if attempt < config.max_attempts - 1:
            delay_ms = calculate_delay(
                attempt, config.base_delay_ms, config.max_delay_ms, rng
            )
            logger.warning(
                f"{label} failed (attempt {attempt + 1}/{config.max_attempts}): "
                f"{last_error}. Retrying in {delay_ms / 1000:.1f}s..."
            )
            await sleep(delay_ms / 1000)

    logger.error(f"{label} failed after {config.max_attempts} attempts: {last_error}")
    return Err(last_error)
