"""Failure-handling primitives: Result, retry, circuit breaker."""

from .circuit_breaker import (
    DEFAULT_BREAKER_CONFIG,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerState,
    CircuitState,
)
from .guard import CallPolicy, guarded_call
from .result import (
    Err,
    Ok,
    Result,
    flat_map,
    is_err,
    is_ok,
    map_err,
    map_result,
    try_catch,
    try_catch_async,
    unwrap,
    unwrap_or,
)
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, calculate_delay, with_retry

__all__ = [
    "CallPolicy",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerState",
    "CircuitState",
    "DEFAULT_BREAKER_CONFIG",
    "DEFAULT_RETRY_CONFIG",
    "Err",
    "Ok",
    "Result",
    "RetryConfig",
    "calculate_delay",
    "flat_map",
    "guarded_call",
    "is_err",
    "is_ok",
    "map_err",
    "map_result",
    "try_catch",
    "try_catch_async",
    "unwrap",
    "unwrap_or",
    "with_retry",
]
