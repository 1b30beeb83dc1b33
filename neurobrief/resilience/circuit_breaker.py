"""Circuit breaker guarding one class of external calls."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TypeVar, assert_never

from neurobrief.errors import CircuitOpenError
from neurobrief.logging_config import get_logger

from .result import Err, Ok, Result

logger = get_logger("circuit_breaker")

T = TypeVar("T")

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class CircuitState(str, Enum):
    """Breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    failure_threshold: int = 5
    reset_timeout_ms: int = 60_000
    half_open_max_attempts: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout_ms < 0:
            raise ValueError("reset_timeout_ms must be >= 0")
        if self.half_open_max_attempts < 1:
            raise ValueError("half_open_max_attempts must be >= 1")


DEFAULT_BREAKER_CONFIG = CircuitBreakerConfig()


@dataclass
class CircuitBreakerState:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_at: float = 0.0
    half_open_attempts: int = 0


class CircuitBreaker:
    """
    Stops issuing calls to a failing dependency and probes it after a cooldown.

    Closed runs calls directly and counts consecutive failures. Reaching
    ``failure_threshold`` opens the breaker. While open, calls are rejected
    without invoking the wrapped function until ``reset_timeout_ms`` has
    passed since the last failure; the next call then moves the breaker to
    half-open and is let through as a probe. A successful probe closes the
    breaker, a failed one reopens it.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig = DEFAULT_BREAKER_CONFIG,
        *,
        clock: Clock = monotonic_ms,
    ):
        self.name = name
        self.config = config
        self._clock = clock
        self._state = CircuitBreakerState()

    @property
    def state(self) -> CircuitState:
        return self._state.state

    def snapshot(self) -> CircuitBreakerState:
        """Copy of the internal state, for inspection."""
        return replace(self._state)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> Result[T, Exception]:
        """Run ``fn`` if the breaker allows it. Never raises."""
        state = self._state

        if state.state is CircuitState.OPEN:
            elapsed = self._clock() - state.last_failure_at
            if elapsed < self.config.reset_timeout_ms:
                remaining = int(self.config.reset_timeout_ms - elapsed)
                return Err(
                    CircuitOpenError(
                        f"Circuit breaker is open for {self.name}; "
                        f"retry after {remaining}ms"
                    )
                )
            logger.info(f"Circuit {self.name}: cooldown elapsed, probing")
            self._transition(CircuitState.HALF_OPEN)

        match state.state:
            case CircuitState.CLOSED:
                pass
            case CircuitState.HALF_OPEN:
                if state.half_open_attempts >= self.config.half_open_max_attempts:
                    state.last_failure_at = self._clock()
                    self._transition(CircuitState.OPEN)
                    return Err(
                        CircuitOpenError(
                            f"Circuit breaker {self.name}: half-open limit reached; reopening"
                        )
                    )
                state.half_open_attempts += 1
            case CircuitState.OPEN:
                # Only reachable if the cooldown branch above was bypassed
                return Err(CircuitOpenError(f"Circuit breaker is open for {self.name}"))
            case _:
                assert_never(state.state)

        try:
            value = await fn()
        except Exception as exc:
            self._on_failure(exc)
            return Err(exc)

        self._on_success()
        return Ok(value)

    def reset(self) -> None:
        """Force the breaker closed with zeroed counters."""
        self._state = CircuitBreakerState()

    def _on_success(self) -> None:
        if self._state.state is not CircuitState.CLOSED:
            logger.info(f"Circuit {self.name}: probe succeeded, closing")
        self._state.failure_count = 0
        self._state.half_open_attempts = 0
        self._transition(CircuitState.CLOSED)

    def _on_failure(self, exc: Exception) -> None:
        state = self._state
        state.failure_count += 1
        state.last_failure_at = self._clock()

        match state.state:
            case CircuitState.HALF_OPEN:
                logger.warning(f"Circuit {self.name}: probe failed, reopening: {exc}")
                self._transition(CircuitState.OPEN)
            case CircuitState.CLOSED:
                if state.failure_count >= self.config.failure_threshold:
                    logger.warning(
                        f"Circuit {self.name}: opening after "
                        f"{state.failure_count} consecutive failures"
                    )
                    self._transition(CircuitState.OPEN)
            case CircuitState.OPEN:
                pass
            case _:
                assert_never(state.state)

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is not CircuitState.HALF_OPEN:
            self._state.half_open_attempts = 0
        self._state.state = new_state
