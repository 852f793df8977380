"""Observability hooks for circuit breakers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from zapguard.logging import BreakerLogger, log_info, log_warning
from zapguard.state import BreakerState


@dataclass(frozen=True, slots=True)
class StateChangeMeta:
    """Metadata passed to state-change hooks."""

    name: str | None


@dataclass(frozen=True, slots=True)
class ErrorMeta:
    """Metadata passed to error hooks."""

    name: str | None
    operation: str


class StateChangeHook(Protocol):
    """Callback fired after every committed breaker state change."""

    def __call__(
        self,
        previous: BreakerState,
        current: BreakerState,
        meta: StateChangeMeta,
    ) -> None:
        """Handle a breaker state transition."""


class ErrorHook(Protocol):
    """Callback fired whenever a breaker operation raises."""

    def __call__(self, error: BaseException, meta: ErrorMeta) -> None:
        """Handle an error raised by a breaker operation."""


@dataclass(frozen=True, slots=True)
class BreakerHooks:
    """Optional observability callbacks injected into a breaker.

    Notes:
        Hooks run synchronously and are never consulted for transition
        decisions. Exceptions raised by a hook propagate to the caller of the
        operation that triggered it.
    """

    on_state_change: StateChangeHook | None = None
    on_error: ErrorHook | None = None


def logging_hooks(logger: BreakerLogger) -> BreakerHooks:
    """Build hooks that emit structured log events for breaker activity."""

    def _on_state_change(
        previous: BreakerState,
        current: BreakerState,
        meta: StateChangeMeta,
    ) -> None:
        if previous.status == current.status:
            return
        log_info(
            logger,
            "circuit_breaker.state_changed",
            breaker_name=meta.name,
            previous_status=str(previous.status),
            status=str(current.status),
            opened_at=current.opened_at,
        )

    def _on_error(error: BaseException, meta: ErrorMeta) -> None:
        log_warning(
            logger,
            "circuit_breaker.operation_failed",
            breaker_name=meta.name,
            operation=meta.operation,
            error_type=error.__class__.__name__,
            error=str(error),
        )

    return BreakerHooks(on_state_change=_on_state_change, on_error=_on_error)
