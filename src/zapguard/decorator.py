"""Wrap async callables with circuit breaker gate and outcome recording."""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Concatenate, ParamSpec, Protocol, TypeVar

T = TypeVar("T")
S = TypeVar("S")
P = ParamSpec("P")


class GuardedBreaker(Protocol):
    """Breaker surface needed to guard a call."""

    def can_execute(self) -> bool:
        """Raise ``CircuitOpenError`` when the call must not be attempted."""

    def record_success(self) -> None:
        """Record a successful call."""

    def record_failure(self) -> None:
        """Record a failed call."""


async def _guarded_call(
    breaker: GuardedBreaker,
    func: Callable[..., Awaitable[T]],
    expected_exceptions: tuple[type[Exception], ...],
    excluded_exceptions: tuple[type[Exception], ...],
    *args: object,
    **kwargs: object,
) -> T:
    breaker.can_execute()
    try:
        result = await func(*args, **kwargs)
    except excluded_exceptions:
        raise
    except expected_exceptions:
        breaker.record_failure()
        raise
    breaker.record_success()
    return result


def with_circuit_breaker(
    breaker: GuardedBreaker,
    func: Callable[P, Awaitable[T]],
    *,
    expected_exceptions: tuple[type[Exception], ...] = (Exception,),
    excluded_exceptions: tuple[type[Exception], ...] = (),
) -> Callable[P, Awaitable[T]]:
    """Return ``func`` wrapped in gate, call and record-outcome steps.

    Args:
        breaker: Breaker gating the call.
        func: Async callable to protect.
        expected_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that propagate without being counted.

    Returns:
        An async callable with the same signature as ``func``. It raises
        ``CircuitOpenError`` without calling ``func`` while the breaker is
        open, and always re-raises exceptions from ``func``.
    """

    @wraps(func)
    async def _wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        return await _guarded_call(
            breaker,
            func,
            expected_exceptions,
            excluded_exceptions,
            *args,
            **kwargs,
        )

    return _wrapper


def circuit_breaker_guard(
    attribute: str,
    *,
    expected_exceptions: tuple[type[Exception], ...] = (Exception,),
    excluded_exceptions: tuple[type[Exception], ...] = (),
) -> Callable[
    [Callable[Concatenate[S, P], Awaitable[T]]],
    Callable[Concatenate[S, P], Awaitable[T]],
]:
    """Guard an async method with the breaker stored on ``self.<attribute>``.

    The breaker is looked up on every call, so instances may swap or share
    breakers freely.
    """

    def _decorate(
        method: Callable[Concatenate[S, P], Awaitable[T]],
    ) -> Callable[Concatenate[S, P], Awaitable[T]]:
        @wraps(method)
        async def _wrapper(self: S, *args: P.args, **kwargs: P.kwargs) -> T:
            breaker: GuardedBreaker = getattr(self, attribute)
            return await _guarded_call(
                breaker,
                method,
                expected_exceptions,
                excluded_exceptions,
                self,
                *args,
                **kwargs,
            )

        return _wrapper

    return _decorate
