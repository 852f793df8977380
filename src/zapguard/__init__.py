"""Three-state circuit breaker with optional remote persistence.

Key behavior notes:
  - ``CircuitBreaker`` is synchronous and never calls the protected operation.
    Callers gate with ``can_execute()`` and report outcomes with
    ``record_success()`` / ``record_failure()``; ``with_circuit_breaker`` and
    ``circuit_breaker_guard`` do that for async callables.
  - ``OPEN`` moves to ``HALF_OPEN`` only when ``can_execute()`` is called after
    the reset timeout. Successes reported while ``OPEN`` are discarded.
  - ``RemoteCircuitBreaker`` composes a ``CircuitBreaker`` and exchanges state
    with storage only on explicit ``save``/``safe_save``/``load``/``refresh``.
    Version conflicts are detected by storage and never retried here.
  - Hooks run synchronously and their exceptions propagate.
"""

from zapguard.breaker import CircuitBreaker, CircuitBreakerConfig
from zapguard.decorator import circuit_breaker_guard, with_circuit_breaker
from zapguard.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
    ConcurrencyConflictError,
    ItemAlreadyExistsError,
    StorageError,
    StorageOperationError,
)
from zapguard.hooks import BreakerHooks, ErrorMeta, StateChangeMeta, logging_hooks
from zapguard.remote import RemoteCircuitBreaker
from zapguard.state import BreakerState, CircuitState
from zapguard.storage import (
    AbstractStateStorage,
    InMemoryStateStorage,
    VersionedValue,
)

__all__ = [
    "AbstractStateStorage",
    "BreakerHooks",
    "BreakerState",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "ConcurrencyConflictError",
    "ErrorMeta",
    "InMemoryStateStorage",
    "ItemAlreadyExistsError",
    "RemoteCircuitBreaker",
    "StateChangeMeta",
    "StorageError",
    "StorageOperationError",
    "VersionedValue",
    "circuit_breaker_guard",
    "logging_hooks",
    "with_circuit_breaker",
]
