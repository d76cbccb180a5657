"""
kvcache — Memory Cache Backend

In-process cache kept in a plain dict for the lifetime of the backend
instance. Thread-safe; nothing survives a restart.
"""

import logging
import threading
from datetime import timedelta
from typing import Any

from ..expiry import compute_expiry, is_live
from ..interface import CacheInterface
from ..validation import ensure_valid_key, ensure_valid_ttl

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheInterface):
    """
    In-memory cache backend.

    Features:
    - Per-key TTL support, expired entries dropped when read
    - Thread-safe operations
    - O(1) get/set/delete operations
    """

    backend_name = "memory"

    def __init__(self) -> None:
        super().__init__()

        # Cache storage: key -> (value, expiry)
        self._cache: dict[str, tuple[Any, int]] = {}

        self._lock = threading.Lock()

    def _lookup(self, key: str) -> tuple[bool, Any]:
        """Return (found, value), dropping the entry if it has expired. Caller holds the lock."""
        entry = self._cache.get(key)
        if entry is None:
            return False, None

        value, expiry = entry
        if not is_live(expiry):
            del self._cache[key]
            logger.debug("Dropped expired key from memory cache: %s", key)
            return False, None

        return True, value

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve value from cache."""
        ensure_valid_key(key)

        with self._lock:
            found, value = self._lookup(key)

        if not found:
            self._misses += 1
            return default

        self._hits += 1
        return value

    def set(self, key: str, value: Any, ttl: int | timedelta | None = None) -> bool:
        """Store value in cache."""
        ensure_valid_key(key)
        seconds = ensure_valid_ttl(ttl)

        expiry = compute_expiry(seconds)
        with self._lock:
            self._cache[key] = (value, expiry)
            self._sets += 1

        return True

    def delete(self, key: str) -> bool:
        """Delete key from cache. Missing keys are not an error."""
        ensure_valid_key(key)

        with self._lock:
            if self._cache.pop(key, None) is not None:
                self._deletes += 1

        return True

    def has(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        ensure_valid_key(key)

        with self._lock:
            found, _ = self._lookup(key)
        return found

    def clear(self) -> bool:
        """Clear all entries from cache."""
        with self._lock:
            size = len(self._cache)
            self._cache.clear()

        logger.info("Cleared %d entries from memory cache", size)
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        stats = self._base_stats()
        with self._lock:
            stats["size"] = len(self._cache)
        return stats
