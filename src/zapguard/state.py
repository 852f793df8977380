"""Circuit breaker state primitives."""

from dataclasses import dataclass
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True, slots=True)
class BreakerState:
    """Immutable view of breaker status and counters.

    Attributes:
        status: Current breaker state.
        failure_count: Failures counted since the last status change.
        success_count: Successes counted while ``HALF_OPEN``.
        opened_at: Epoch milliseconds when the breaker entered ``OPEN``, if open.
    """

    status: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    opened_at: int | None = None


INITIAL_STATE = BreakerState()
