"""
kvcache — Core Error Types

Defines the exception hierarchy for the cache runtime.
All exceptions inherit from KVCacheError for consistent error handling.

Validation errors (bad key, bad TTL, empty value, bad batch input) are raised
before any storage is touched. Storage errors wrap whatever the underlying
medium raised (OSError, redis.RedisError, botocore errors) and are never
retried by the library.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes, used for structured error reporting."""

    # Input validation errors
    INVALID_KEY = "INVALID_KEY"
    INVALID_TTL = "INVALID_TTL"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_BATCH_INPUT = "INVALID_BATCH_INPUT"

    # Storage errors
    STORAGE_FAILURE = "STORAGE_FAILURE"

    # Setup errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KVCacheError(Exception):
    """Base exception for all kvcache errors."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for logs and API responses."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(KVCacheError):
    """Raised when configuration is invalid or a backend cannot be built."""

    error_code = ErrorCode.CONFIGURATION_ERROR


class CacheError(KVCacheError):
    """Base exception for cache-related errors."""


class InvalidArgumentError(CacheError, ValueError):
    """Base exception for arguments rejected before any I/O."""


class InvalidKeyError(InvalidArgumentError):
    """Raised when a key is not a non-empty string of [A-Za-z0-9_-]."""

    error_code = ErrorCode.INVALID_KEY

    def __init__(self, key: Any):
        super().__init__(
            "Invalid key. Only [a-zA-Z0-9_-] allowed.",
            {"key": repr(key)},
        )
        self.key = key


class InvalidTTLError(InvalidArgumentError):
    """Raised when a TTL is neither None nor a non-negative integer."""

    error_code = ErrorCode.INVALID_TTL

    def __init__(self, ttl: Any):
        super().__init__(
            "TTL must be None, 0 or a positive integer number of seconds.",
            {"ttl": repr(ttl)},
        )
        self.ttl = ttl


class InvalidValueError(InvalidArgumentError):
    """Raised when a value is empty on a backend that cannot store empties."""

    error_code = ErrorCode.INVALID_VALUE

    def __init__(self, key: str, value: Any):
        super().__init__(
            "Value cannot be empty.",
            {"key": key, "value_type": type(value).__name__},
        )


class InvalidBatchInputError(InvalidArgumentError):
    """Raised when a multi-key operation gets a non-iterable or empty collection."""

    error_code = ErrorCode.INVALID_BATCH_INPUT

    def __init__(
        self,
        message: str = "Keys must be a non-empty iterable of strings.",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)


class CacheStorageError(CacheError):
    """Raised when the underlying storage medium reports a failure."""

    error_code = ErrorCode.STORAGE_FAILURE

    def __init__(
        self,
        backend: str,
        operation: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        error_details = dict(details or {})
        error_details.update({"backend": backend, "operation": operation})
        super().__init__(
            message or f"Cache backend '{backend}' failed during {operation}",
            error_details,
        )
        self.backend = backend
        self.operation = operation


def extract_error_code(error: Exception) -> ErrorCode:
    """
    Extract the appropriate ErrorCode from an exception.

    Args:
        error: Exception to categorize

    Returns:
        ErrorCode carried by kvcache errors, INTERNAL_ERROR for anything else
    """
    if isinstance(error, KVCacheError):
        return error.error_code

    return ErrorCode.INTERNAL_ERROR
