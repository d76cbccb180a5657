"""
kvcache — Shared-Memory Cache Backend

Maps cache operations directly onto a shared key-value store, a Redis
server reached through an injected `redis.Redis` handle:
- GET / SET EXAT / DEL / EXISTS per key
- SCAN + DEL over "<namespace>:*" for clear()

The store expires keys itself (SET ... EXAT), so its TTL is authoritative and
records are not re-checked against kvcache.cache.expiry on read. The absolute
expiry is one second past compute_expiry(), so a record stays visible through
its last second like on every other backend. The deadline is taken from the
local clock; client and server clocks must agree.

Values are pickled. The handle is passed in by the caller (or built by the
factory from REDIS_URL); this module holds no global client.

Example:
    client = redis.Redis.from_url("redis://localhost:6379/0")
    cache = SharedMemoryCacheBackend(client, namespace="myapp")
    cache.set("greeting", {"msg": "hello"}, ttl=60)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from .. import serialization
from ..interface import CacheInterface
from ..expiry import compute_expiry
from ..validation import ensure_valid_key, ensure_valid_ttl, is_valid_key

if TYPE_CHECKING:
    from redis import Redis

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 1000


class SharedMemoryCacheBackend(CacheInterface):
    """
    Shared key-value store backend with native TTL.

    Notes:
    - Keys are prefixed with the configured namespace so clear() only
      removes this cache's entries.
    - ttl None/0 stores without expiry; positive ttl sets an EXAT deadline.
    - The namespace follows the key syntax, so it is safe inside a SCAN
      MATCH pattern.
    """

    backend_name = "shared"
    storage_errors = (RedisError,)

    def __init__(
        self,
        client: Redis,
        namespace: str = "kvcache",
        owns_client: bool = False,
    ) -> None:
        """
        Initialize shared-memory cache backend.

        Args:
            client: Redis handle (must not use decode_responses=True)
            namespace: Prefix for all keys ([A-Za-z0-9_-])
            owns_client: If True, close() also closes the handle
        """
        if client is None:
            raise ValueError("client is required")

        namespace = namespace.strip() or "kvcache"
        if not is_valid_key(namespace):
            raise ValueError(f"namespace must match [A-Za-z0-9_-]+, got {namespace!r}")

        super().__init__()
        self.namespace = namespace
        self._client = client
        self._owns_client = owns_client

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value by key."""
        ensure_valid_key(key)

        with self._storage_operation("get", key=key):
            data = self._client.get(self._make_key(key))

        if data is None:
            self._misses += 1
            return default

        self._hits += 1
        return serialization.loads(data)

    def set(self, key: str, value: Any, ttl: int | timedelta | None = None) -> bool:
        """Store a value with optional TTL."""
        ensure_valid_key(key)
        seconds = ensure_valid_ttl(ttl)

        payload = serialization.dumps(value)
        expiry = compute_expiry(seconds)
        with self._storage_operation("set", key=key, ttl=seconds):
            res = self._client.set(self._make_key(key), payload, exat=expiry + 1 if expiry else None)

        success = bool(res)
        if success:
            self._sets += 1
        return success

    def delete(self, key: str) -> bool:
        """Delete a single key. Missing keys are not an error."""
        ensure_valid_key(key)

        with self._storage_operation("delete", key=key):
            deleted = self._client.delete(self._make_key(key))

        self._deletes += int(deleted or 0)
        return True

    def has(self, key: str) -> bool:
        """Check if a key exists."""
        ensure_valid_key(key)

        with self._storage_operation("has", key=key):
            return bool(self._client.exists(self._make_key(key)))

    def clear(self) -> bool:
        """Clear all entries under the namespace."""
        pattern = f"{self.namespace}:*"
        total_deleted = 0

        with self._storage_operation("clear", namespace=self.namespace):
            batch: list[Any] = []
            for ns_key in self._client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                batch.append(ns_key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    total_deleted += int(self._client.delete(*batch))
                    batch = []
            if batch:
                total_deleted += int(self._client.delete(*batch))

        self._deletes += total_deleted
        logger.info("Cleared %d keys from namespace '%s'", total_deleted, self.namespace)
        return True

    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        stats = self._base_stats()
        stats["namespace"] = self.namespace
        return stats

    def close(self) -> None:
        """Close the Redis handle if this backend owns it."""
        if not self._owns_client:
            return
        try:
            self._client.close()
            logger.info("Closed shared cache backend for namespace '%s'", self.namespace)
        except RedisError as e:
            logger.warning(
                "Error closing Redis client: %s",
                e,
                extra={"namespace": self.namespace, "error": str(e)},
            )
