"""Wire codec for persisted breaker state.

Payload shape, shared by every backend that stores JSON documents::

    {"status": "OPEN", "failureCount": 0, "successCount": 0,
     "openedAt": 1718000000000, "version": "2024-06-10T06:13:20.000000+00:00"}

``openedAt`` is omitted when the breaker is not open.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from zapguard.state import BreakerState, CircuitState
from zapguard.storage import VersionedValue


class StoredBreakerState(BaseModel):
    """Validated persisted representation of one breaker state."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    status: CircuitState
    failure_count: int = Field(ge=0)
    success_count: int = Field(ge=0)
    opened_at: int | None = None
    version: str | None = None

    @classmethod
    def from_state(
        cls,
        state: BreakerState,
        *,
        version: str | None = None,
    ) -> StoredBreakerState:
        """Build a payload model from an in-memory state."""
        return cls(
            status=state.status,
            failure_count=state.failure_count,
            success_count=state.success_count,
            opened_at=state.opened_at,
            version=version,
        )

    @classmethod
    def decode(cls, raw: str | bytes) -> StoredBreakerState:
        """Parse and validate a JSON payload.

        Raises:
            pydantic.ValidationError: When the payload is malformed.
        """
        return cls.model_validate_json(raw)

    def encode(self) -> bytes:
        """Serialize to JSON using camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode()

    def to_state(self) -> BreakerState:
        return BreakerState(
            status=self.status,
            failure_count=self.failure_count,
            success_count=self.success_count,
            opened_at=self.opened_at,
        )

    def to_versioned(self, fallback_version: str) -> VersionedValue:
        """Return the storage envelope, using ``fallback_version`` if unset."""
        version = self.version if self.version else fallback_version
        return VersionedValue(value=self.to_state(), version=version)
