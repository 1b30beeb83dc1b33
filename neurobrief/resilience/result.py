"""
Two-variant outcome type used at every fallible boundary.

Callers consume results with structural pattern matching:

    match result:
        case Ok(value):
            ...
        case Err(error):
            ...
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def success(self) -> Literal[True]:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying an error."""

    error: E

    @property
    def success(self) -> Literal[False]:
        return False


Result = Ok[T] | Err[E]


def is_ok(result: Result[Any, Any]) -> bool:
    return isinstance(result, Ok)


def is_err(result: Result[Any, Any]) -> bool:
    return isinstance(result, Err)


def map_result(result: Result[T, E], fn: Callable[[T], U]) -> Result[U, E]:
    """Transform a success value; failures pass through unchanged."""
    match result:
        case Ok(value):
            return Ok(fn(value))
        case Err():
            return result


def map_err(result: Result[T, E], fn: Callable[[E], F]) -> Result[T, F]:
    """Transform a failure; successes pass through unchanged."""
    match result:
        case Ok():
            return result
        case Err(error):
            return Err(fn(error))


def flat_map(result: Result[T, E], fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
    """Chain Result-returning functions, short-circuiting on the first failure."""
    match result:
        case Ok(value):
            return fn(value)
        case Err():
            return result


def unwrap_or(result: Result[T, Any], default: T) -> T:
    """Extract the success value or return the default."""
    match result:
        case Ok(value):
            return value
        case Err():
            return default


def unwrap(result: Result[T, Any]) -> T:
    """Extract the success value or raise the failure."""
    match result:
        case Ok(value):
            return value
        case Err(error):
            if isinstance(error, BaseException):
                raise error
            raise RuntimeError(str(error))


def try_catch(fn: Callable[[], T]) -> Result[T, Exception]:
    """Run a callable that may raise and capture the outcome."""
    try:
        return Ok(fn())
    except Exception as exc:
        return Err(exc)


async def try_catch_async(fn: Callable[[], Awaitable[T]]) -> Result[T, Exception]:
    """Async version of try_catch."""
    try:
        return Ok(await fn())
    except Exception as exc:
        return Err(exc)
