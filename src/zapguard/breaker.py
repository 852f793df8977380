"""Core circuit breaker implementation."""

import time
from dataclasses import dataclass, replace

from zapguard.exceptions import CircuitOpenError
from zapguard.hooks import BreakerHooks, ErrorMeta, StateChangeMeta
from zapguard.state import INITIAL_STATE, BreakerState, CircuitState


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Failures required while ``CLOSED`` before opening.
        success_threshold: Successes required while ``HALF_OPEN`` before closing.
        reset_timeout_ms: Milliseconds to wait while ``OPEN`` before a probe.
        half_open_failure_threshold: Failures while ``HALF_OPEN`` before
            reopening. Set it to ``failure_threshold`` to share one threshold
            across both states.
    """

    failure_threshold: int
    success_threshold: int
    reset_timeout_ms: int
    half_open_failure_threshold: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if self.reset_timeout_ms < 0:
            raise ValueError("reset_timeout_ms must be >= 0")
        if self.half_open_failure_threshold < 1:
            raise ValueError("half_open_failure_threshold must be >= 1")


class CircuitBreaker:
    """In-memory three-state circuit breaker.

    The breaker never calls the protected operation itself. Callers ask
    :meth:`can_execute` before the call and report the outcome with
    :meth:`record_success` or :meth:`record_failure`.

    Operations are synchronous and unlocked. Concurrent callers sharing one
    instance get last-write-wins transitions.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        *,
        name: str | None = None,
        hooks: BreakerHooks | None = None,
    ) -> None:
        """Build a circuit breaker.

        Args:
            config: Breaker thresholds and reset timeout.
            name: Optional breaker name reported to hooks and errors.
            hooks: Optional observability callbacks.
        """
        self.name = name
        self.config = config
        self._hooks = BreakerHooks() if hooks is None else hooks
        self._state = INITIAL_STATE

    def _set_state(self, state: BreakerState) -> None:
        previous = self._state
        self._state = state
        on_state_change = self._hooks.on_state_change
        if on_state_change is not None:
            on_state_change(previous, state, StateChangeMeta(name=self.name))

    def _emit_error(self, error: BaseException, operation: str) -> None:
        on_error = self._hooks.on_error
        if on_error is not None:
            on_error(error, ErrorMeta(name=self.name, operation=operation))

    def get_state(self) -> BreakerState:
        """Return a snapshot of the current state."""
        return replace(self._state)

    def is_open(self) -> bool:
        return self._state.status == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self._state.status == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        return self._state.status == CircuitState.HALF_OPEN

    def can_execute(self) -> bool:
        """Gate a protected call.

        Returns:
            ``True`` when the call may proceed. An ``OPEN`` breaker whose reset
            timeout has elapsed moves to ``HALF_OPEN`` and admits the call as a
            probe. An ``OPEN`` state without ``opened_at`` (for example one
            restored from storage written by another client) has no deadline
            to wait for, so it is admitted as a probe too instead of being
            rejected forever.

        Raises:
            CircuitOpenError: When the circuit is open and the reset timeout
                has not elapsed yet.
        """
        try:
            state = self._state
            if state.status != CircuitState.OPEN:
                return True

            if state.opened_at is not None:
                elapsed = _epoch_ms() - state.opened_at
                if elapsed < self.config.reset_timeout_ms:
                    raise CircuitOpenError(
                        self.name,
                        retry_after_ms=self.config.reset_timeout_ms - elapsed,
                    )

            self._set_state(BreakerState(status=CircuitState.HALF_OPEN))
            return True
        except Exception as exc:
            self._emit_error(exc, "can_execute")
            raise

    def record_success(self) -> None:
        """Record a successful call.

        Only ``HALF_OPEN`` counts successes. A success reported while ``CLOSED``
        or ``OPEN`` (for example a straggling call that started before the
        breaker opened) is discarded.
        """
        try:
            state = self._state
            if state.status != CircuitState.HALF_OPEN:
                return

            success_count = state.success_count + 1
            if success_count >= self.config.success_threshold:
                self._set_state(BreakerState(status=CircuitState.CLOSED))
                return
            self._set_state(replace(state, success_count=success_count))
        except Exception as exc:
            self._emit_error(exc, "record_success")
            raise

    def record_failure(self) -> None:
        """Record a failed call, opening the circuit at the threshold.

        A ``HALF_OPEN`` failure below ``half_open_failure_threshold`` also
        clears the success count; closing needs an unbroken run of successes.
        """
        try:
            state = self._state
            if state.status == CircuitState.OPEN:
                return

            threshold = self.config.failure_threshold
            if state.status == CircuitState.HALF_OPEN:
                threshold = self.config.half_open_failure_threshold

            failure_count = state.failure_count + 1
            if failure_count >= threshold:
                self._set_state(
                    BreakerState(status=CircuitState.OPEN, opened_at=_epoch_ms())
                )
                return
            self._set_state(
                replace(state, failure_count=failure_count, success_count=0)
            )
        except Exception as exc:
            self._emit_error(exc, "record_failure")
            raise

    def restore(self, state: BreakerState) -> None:
        """Replace the current state with one obtained elsewhere.

        Used to adopt persisted state. State-change hooks fire only when the
        restored state differs from the current one.
        """
        if state == self._state:
            return
        self._set_state(replace(state))
