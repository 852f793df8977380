"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected because the circuit is open.
  - Losing an optimistic-concurrency race against another writer.
  - A guarded initial write finding an existing entry.
  - Any other storage failure, which wraps the original cause.
"""


class CircuitBreakerError(Exception):
    """Base exception for the zapguard package."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the breaker rejecting the call, if named.
        retry_after_ms: Milliseconds until a half-open probe may be attempted.
    """

    def __init__(self, breaker_name: str | None, retry_after_ms: int) -> None:
        """Initialize a circuit-open exception payload.

        Args:
            breaker_name: Breaker rejecting the call.
            retry_after_ms: Milliseconds until the next probe window opens.
        """
        self.breaker_name = breaker_name
        self.retry_after_ms = retry_after_ms
        label = breaker_name if breaker_name else "<unnamed>"
        super().__init__(f"circuit_open: {label} retry_after={retry_after_ms}ms")


class StorageError(CircuitBreakerError):
    """Base exception for breaker state persistence failures."""


class ConcurrencyConflictError(StorageError):
    """Raised by storage when a versioned write loses to another writer."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f'Concurrency conflict for key "{key}"')


class ItemAlreadyExistsError(StorageError):
    """Raised when a guarded initial save finds an existing entry."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f'Item with key "{key}" already exists.')


class StorageOperationError(StorageError):
    """Raised when a storage call fails for any reason other than a conflict.

    Attributes:
        cause: The original storage exception.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
