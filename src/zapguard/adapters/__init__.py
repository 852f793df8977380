"""Storage adapters for concrete key-value backends."""

from zapguard.adapters.cloudflare_kv import (
    CloudflareKVStorage,
    KVRequestError,
    KVTransientError,
)

__all__ = [
    "CloudflareKVStorage",
    "KVRequestError",
    "KVTransientError",
]
