"""Cloudflare Workers KV storage adapter using the public REST API."""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import quote

import httpx
from tenacity import retry_if_exception_type

from zapguard.exceptions import ConcurrencyConflictError
from zapguard.retry import RetryBackoffPolicy, build_exponential_jitter_retrying
from zapguard.serialization import StoredBreakerState
from zapguard.settings import DEFAULT_CLOUDFLARE_API_BASE_URL, CloudflareKVSettings
from zapguard.state import BreakerState
from zapguard.storage import AbstractStateStorage, VersionedValue

RETRY_STATUSES = {408, 429, 500, 502, 503, 504}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class KVRequestError(RuntimeError):
    """Raised when the KV REST API returns an unusable response."""

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        response_body: str | None = None,
    ) -> None:
        """Initialize request-error metadata.

        Args:
            message: Human-readable error message.
            http_status: Optional HTTP status returned by the API.
            response_body: Optional response payload text.
        """
        super().__init__(message)
        self.http_status = http_status
        self.response_body = response_body


class KVTransientError(KVRequestError):
    """Raised for retryable KV failures (transport errors, 408/429/5xx)."""


class CloudflareKVStorage(AbstractStateStorage):
    """Breaker state storage backed by one Cloudflare Workers KV namespace.

    KV offers no conditional writes. When ``expected_version`` is given the
    adapter reads the current version and compares before writing, which
    narrows but does not close the race between concurrent writers.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        account_id: str,
        namespace_id: str,
        api_token: str,
        api_base_url: str = DEFAULT_CLOUDFLARE_API_BASE_URL,
        timeout_seconds: float = 10.0,
        retry_attempts: int = 1,
        retry_min_seconds: float = 0.5,
        retry_max_seconds: float = 5.0,
    ) -> None:
        """Create a KV adapter bound to one namespace.

        Args:
            client: Shared async HTTP client.
            account_id: Cloudflare account identifier.
            namespace_id: KV namespace identifier.
            api_token: API token with KV read/write permission.
            api_base_url: Cloudflare API base URL.
            timeout_seconds: Per-request timeout.
            retry_attempts: Max attempts per request for transient failures.
            retry_min_seconds: Minimum retry backoff in seconds.
            retry_max_seconds: Maximum retry backoff in seconds.
        """
        self._client = client
        self._values_url = (
            f"{api_base_url.rstrip('/')}/accounts/{account_id}"
            f"/storage/kv/namespaces/{namespace_id}/values"
        )
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._timeout = timeout_seconds
        self._retry_policy = RetryBackoffPolicy(
            attempts=retry_attempts,
            min_seconds=retry_min_seconds,
            max_seconds=retry_max_seconds,
        )

    @classmethod
    def from_settings(
        cls,
        client: httpx.AsyncClient,
        settings: CloudflareKVSettings,
    ) -> CloudflareKVStorage:
        """Build an adapter from environment-driven settings."""
        return cls(
            client=client,
            account_id=settings.account_id,
            namespace_id=settings.namespace_id,
            api_token=settings.api_token.get_secret_value(),
            api_base_url=settings.api_base_url,
            timeout_seconds=settings.timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
        )

    def value_url(self, key: str) -> str:
        """Return the REST URL of ``key``."""
        return f"{self._values_url}/{quote(key, safe='')}"

    async def get(self, key: str) -> VersionedValue | None:
        """Read and validate the stored payload for ``key``."""
        response = await self._request("GET", key, allow_not_found=True)
        if response is None:
            return None
        payload = StoredBreakerState.decode(response.content)
        return payload.to_versioned(fallback_version=self._new_version())

    async def put(
        self,
        key: str,
        value: BreakerState,
        *,
        expected_version: str | None = None,
    ) -> str:
        """Write ``value`` stamped with a fresh version and return it."""
        if expected_version is not None:
            current = await self.get(key)
            if current is None or current.version != expected_version:
                raise ConcurrencyConflictError(key)

        version = self._new_version()
        payload = StoredBreakerState.from_state(value, version=version)
        await self._request(
            "PUT",
            key,
            content=payload.encode(),
            headers={"Content-Type": "application/json"},
        )
        return version

    async def delete(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""
        await self._request("DELETE", key, allow_not_found=True)

    @staticmethod
    def _new_version() -> str:
        return _utcnow().isoformat()

    async def _request(
        self,
        method: str,
        key: str,
        *,
        allow_not_found: bool = False,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response | None:
        retrying = build_exponential_jitter_retrying(
            retry=retry_if_exception_type(KVTransientError),
            policy=self._retry_policy,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request_once(
                    method,
                    key,
                    allow_not_found=allow_not_found,
                    content=content,
                    headers=headers,
                )

        raise RuntimeError("KV retry loop exited unexpectedly.")

    async def _request_once(
        self,
        method: str,
        key: str,
        *,
        allow_not_found: bool,
        content: bytes | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response | None:
        request_headers = dict(self._headers)
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.request(
                method,
                self.value_url(key),
                content=content,
                headers=request_headers,
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            raise KVTransientError(str(exc)) from exc

        status = response.status_code
        if status == 404 and allow_not_found:
            return None
        if status in RETRY_STATUSES:
            raise KVTransientError(
                f"KV {method} transient failure (HTTP {status}).",
                http_status=status,
                response_body=response.text,
            )
        if status >= 400:
            raise KVRequestError(
                f"KV {method} returned HTTP {status}.",
                http_status=status,
                response_body=response.text,
            )
        return response
