"""
kvcache — Cache Interface

Defines the abstract interface that all cache backends must implement,
together with the behaviour they share: up-front validation of multi-key
input, the default multi-key loops, hit/miss counters and the translation
of storage-medium errors into CacheStorageError.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import timedelta
from typing import Any

from ..errors import CacheStorageError
from .validation import ensure_valid_items, ensure_valid_keys, ensure_valid_ttl

logger = logging.getLogger(__name__)


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    All cache implementations must implement this interface to ensure
    consistent behavior across different backends (memory, shared, file,
    DynamoDB). Callers depend only on this class.

    Keyed operations raise InvalidKeyError/InvalidTTLError/InvalidValueError
    before any I/O. Errors reported by the storage medium are re-raised as
    CacheStorageError and never retried.
    """

    #: Name reported in stats, logs and CacheStorageError details
    backend_name: str = "abstract"

    #: Exception types of the storage medium that map to CacheStorageError
    storage_errors: tuple[type[BaseException], ...] = ()

    def __init__(self) -> None:
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key
            default: Value returned on a miss or for an expired record

        Returns:
            Cached value if found and not expired, default otherwise
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int | timedelta | None = None) -> bool:
        """
        Store a value in the cache, replacing any existing record.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (None or 0 = no expiry)

        Returns:
            True if stored successfully
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key from the cache.

        Args:
            key: Cache key to delete

        Returns:
            True on success (see each backend for the missing-key result)
        """

    @abstractmethod
    def clear(self) -> bool:
        """
        Remove every record owned by this cache.

        Returns:
            True if cache was cleared successfully
        """

    @abstractmethod
    def has(self, key: str) -> bool:
        """
        Check if a key exists in the cache.

        The answer can be stale by the time the caller acts on it; do not use
        has() followed by get() for anything correctness-critical.

        Returns:
            True if key exists and is not expired, False otherwise
        """

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics (hits, misses, backend details)
        """

    def close(self) -> None:
        """Release resources held by the backend. No-op by default."""
        logger.debug("Cache backend '%s' closed", self.backend_name)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    # ------------ Default multi-key operations ------------

    def get_multiple(self, keys: Iterable[str], default: Any = None) -> dict[str, Any]:
        """
        Retrieve multiple values from the cache.

        Default implementation calls get() for each key.
        Backends can override for better performance.

        Args:
            keys: Non-empty iterable of cache keys
            default: Value used for missing or expired keys

        Returns:
            Dictionary with every requested key, in input order

        Raises:
            InvalidBatchInputError: If keys is not an iterable or is empty
            InvalidKeyError: If any key is invalid (nothing is read)
        """
        key_list = ensure_valid_keys(keys)
        return {key: self.get(key, default) for key in key_list}

    def set_multiple(
        self,
        values: Mapping[str, Any] | Iterable[tuple[str, Any]],
        ttl: int | timedelta | None = None,
    ) -> bool:
        """
        Store multiple values in the cache.

        Default implementation calls set() for each item after validating
        the TTL and every key. Not atomic: if a write fails, earlier writes
        stay applied.

        Args:
            values: Mapping of keys to values
            ttl: Time-to-live in seconds (applies to all items)

        Returns:
            True if every item was stored
        """
        ensure_valid_ttl(ttl)
        items = ensure_valid_items(values)

        success = True
        for key, value in items:
            success = self.set(key, value, ttl) and success
        return success

    def delete_multiple(self, keys: Iterable[str]) -> bool:
        """
        Delete multiple keys from the cache.

        Default implementation calls delete() for each key; missing keys are
        not an error.

        Returns:
            True unless a delete raises
        """
        key_list = ensure_valid_keys(keys)
        for key in key_list:
            self.delete(key)
        return True

    # ------------ Helpers ------------

    @contextmanager
    def _storage_operation(self, operation: str, **context: Any) -> Iterator[None]:
        """Translate storage-medium errors raised inside the block into CacheStorageError."""
        try:
            yield
        except self.storage_errors as e:
            logger.error(
                "Cache backend '%s' failed during %s: %s",
                self.backend_name,
                operation,
                e,
                extra={"backend": self.backend_name, "operation": operation, "error": str(e), **context},
                exc_info=True,
            )
            raise CacheStorageError(
                self.backend_name,
                operation,
                f"Cache backend '{self.backend_name}' failed during {operation}: {e}",
                details={"error": str(e), **context},
            ) from e

    def _base_stats(self) -> dict[str, Any]:
        """Counters shared by every backend."""
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0
        return {
            "backend": self.backend_name,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 2),
            "sets": self._sets,
            "deletes": self._deletes,
        }
