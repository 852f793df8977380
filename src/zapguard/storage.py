"""State storage for remote circuit breakers.

Storage is intentionally decoupled from breaker logic. Backends (for example
Cloudflare KV, Redis or a database table) implement the interface and own
their consistency guarantees.

Every stored value carries an opaque version token. A write that names an
``expected_version`` must be rejected with ``ConcurrencyConflictError`` when
the stored version differs. Tokens are compared for equality only.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

from zapguard.exceptions import ConcurrencyConflictError
from zapguard.state import BreakerState


@dataclass(frozen=True, slots=True)
class VersionedValue:
    """Stored breaker state paired with its version token."""

    value: BreakerState
    version: str


class AbstractStateStorage(ABC):
    """Abstract breaker state storage interface."""

    @abstractmethod
    async def get(self, key: str) -> VersionedValue | None:
        """Return the stored value for ``key`` or ``None`` when absent."""

    @abstractmethod
    async def put(
        self,
        key: str,
        value: BreakerState,
        *,
        expected_version: str | None = None,
    ) -> str:
        """Store ``value`` under ``key`` and return the new version token.

        Raises:
            ConcurrencyConflictError: When ``expected_version`` is given and
                does not match the currently stored version.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the value stored under ``key``, if any."""


class InMemoryStateStorage(AbstractStateStorage):
    """Process-local storage guarded by one cooperative lock.

    Critical sections never await. Nothing is kept for keys that were only
    read or have been deleted.
    """

    def __init__(self) -> None:
        """Initialize the value registry and its lock."""
        self._values: dict[str, VersionedValue] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _next_version() -> str:
        return uuid4().hex

    async def get(self, key: str) -> VersionedValue | None:
        """Return the stored value, or ``None`` when ``key`` is unknown."""
        async with self._lock:
            return self._values.get(key)

    async def put(
        self,
        key: str,
        value: BreakerState,
        *,
        expected_version: str | None = None,
    ) -> str:
        """Store a value, enforcing ``expected_version`` when provided.

        An expected version also conflicts when the entry has been deleted in
        the meantime.
        """
        async with self._lock:
            current = self._values.get(key)
            if expected_version is not None and (
                current is None or current.version != expected_version
            ):
                raise ConcurrencyConflictError(key)
            version = self._next_version()
            self._values[key] = VersionedValue(value=value, version=version)
            return version

    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is a no-op."""
        async with self._lock:
            self._values.pop(key, None)
