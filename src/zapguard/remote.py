"""Circuit breaker with state persisted in an external storage backend."""

import logging

from zapguard.breaker import CircuitBreaker, CircuitBreakerConfig
from zapguard.exceptions import (
    ConcurrencyConflictError,
    ItemAlreadyExistsError,
    StorageError,
    StorageOperationError,
)
from zapguard.hooks import BreakerHooks, ErrorMeta
from zapguard.logging import log_warning
from zapguard.state import BreakerState
from zapguard.storage import AbstractStateStorage, VersionedValue

_logger = logging.getLogger(__name__)


class RemoteCircuitBreaker:
    """Circuit breaker whose state can be saved to and loaded from storage.

    The breaker composes a :class:`CircuitBreaker` and keeps all transition
    logic there. Persistence is explicit: nothing is read or written unless
    :meth:`save`, :meth:`safe_save`, :meth:`load`, :meth:`refresh` or
    :meth:`delete` is awaited.

    Optimistic concurrency is delegated to storage. The version token from the
    last successful refresh or save is sent back as ``expected_version`` on the
    next write; a mismatch surfaces as ``ConcurrencyConflictError`` and is
    never retried here. :meth:`load` only reads and does not move the version.
    """

    def __init__(
        self,
        name: str,
        *,
        storage: AbstractStateStorage,
        config: CircuitBreakerConfig,
        hooks: BreakerHooks | None = None,
    ) -> None:
        """Build a remote circuit breaker.

        Args:
            name: Non-empty breaker name, used as the storage key.
            storage: Backend holding versioned breaker state.
            config: Breaker thresholds and reset timeout.
            hooks: Optional observability callbacks.

        Raises:
            ValueError: When ``name`` is empty or blank.
        """
        if not name or not name.strip():
            raise ValueError("RemoteCircuitBreaker requires a non-empty name")
        self.name = name
        self._storage = storage
        self._hooks = BreakerHooks() if hooks is None else hooks
        self._breaker = CircuitBreaker(config, name=name, hooks=self._hooks)
        self._version: str | None = None

    @property
    def breaker(self) -> CircuitBreaker:
        """The wrapped in-memory breaker."""
        return self._breaker

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._breaker.config

    @property
    def version(self) -> str | None:
        """Version token from the last successful refresh or save."""
        return self._version

    def can_execute(self) -> bool:
        return self._breaker.can_execute()

    def record_success(self) -> None:
        self._breaker.record_success()

    def record_failure(self) -> None:
        self._breaker.record_failure()

    def get_state(self) -> BreakerState:
        return self._breaker.get_state()

    def is_open(self) -> bool:
        return self._breaker.is_open()

    def is_closed(self) -> bool:
        return self._breaker.is_closed()

    def is_half_open(self) -> bool:
        return self._breaker.is_half_open()

    def _fail(self, error: BaseException, operation: str) -> None:
        if isinstance(error, ConcurrencyConflictError):
            log_warning(
                _logger,
                "circuit_breaker.concurrency_conflict",
                breaker_name=self.name,
                operation=operation,
            )
        elif isinstance(error, StorageOperationError):
            log_warning(
                _logger,
                "circuit_breaker.storage_failed",
                breaker_name=self.name,
                operation=operation,
                error_type=error.cause.__class__.__name__,
            )
        on_error = self._hooks.on_error
        if on_error is not None:
            on_error(error, ErrorMeta(name=self.name, operation=operation))

    async def _save(self, expected_version: str | None) -> None:
        try:
            self._version = await self._storage.put(
                self.name,
                self._breaker.get_state(),
                expected_version=expected_version,
            )
        except ConcurrencyConflictError:
            raise
        except Exception as exc:
            raise StorageOperationError(
                "Failed to save circuit breaker state", exc
            ) from exc

    async def save(self) -> None:
        """Persist the current state.

        Raises:
            ConcurrencyConflictError: When storage rejects the expected version.
            StorageOperationError: When the storage call fails for any other
                reason.
        """
        try:
            await self._save(self._version)
        except StorageError as exc:
            self._fail(exc, "save")
            raise

    async def safe_save(self) -> None:
        """Persist the current state only if nothing is stored yet.

        This is a read followed by a write. Two processes may both observe an
        empty key and both write; only a backend-level conditional write can
        close that window.

        Raises:
            ItemAlreadyExistsError: When an entry already exists. Nothing is
                written.
            ConcurrencyConflictError: When storage rejects the expected version.
            StorageOperationError: When a storage call fails.
        """
        try:
            try:
                existing = await self._storage.get(self.name)
            except Exception as exc:
                raise StorageOperationError(
                    "Failed to safe_save circuit breaker state", exc
                ) from exc
            if existing is not None:
                raise ItemAlreadyExistsError(self.name)
            await self._save(None)
        except StorageError as exc:
            self._fail(exc, "safe_save")
            raise

    async def _load(self, operation: str) -> VersionedValue | None:
        try:
            return await self._storage.get(self.name)
        except Exception as exc:
            error = StorageOperationError("Failed to load circuit breaker state", exc)
            self._fail(error, operation)
            raise error from exc

    async def load(self) -> BreakerState | None:
        """Read the stored state without applying it.

        The tracked version is left untouched: the in-memory state has not
        caught up with the stored one, so a later :meth:`save` must still
        conflict with it.

        Returns:
            The stored state, or ``None`` when nothing is stored for this name.

        Raises:
            StorageOperationError: When the storage read fails.
        """
        stored = await self._load("load")
        return None if stored is None else stored.value

    async def refresh(self) -> BreakerState | None:
        """Load the stored state and adopt it along with its version."""
        stored = await self._load("refresh")
        if stored is None:
            return None
        self._breaker.restore(stored.value)
        self._version = stored.version
        return stored.value

    async def delete(self) -> None:
        """Remove the stored state and forget the tracked version."""
        try:
            await self._storage.delete(self.name)
        except Exception as exc:
            error = StorageOperationError(
                "Failed to delete circuit breaker state", exc
            )
            self._fail(error, "delete")
            raise error from exc
        self._version = None
