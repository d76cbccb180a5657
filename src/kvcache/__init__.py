"""
kvcache — Uniform Key-Value Cache

One cache contract (get/set/delete/clear/has plus multi-key variants, with
optional TTL) over interchangeable backends: in-process memory, a shared
Redis store, the local filesystem and a DynamoDB table.
"""

__version__ = "1.0.0"

from .cache import CacheInterface, create_cache, get_cache
from .errors import (
    CacheError,
    CacheStorageError,
    ConfigurationError,
    InvalidArgumentError,
    InvalidBatchInputError,
    InvalidKeyError,
    InvalidTTLError,
    InvalidValueError,
    KVCacheError,
)

__all__ = [
    "CacheInterface",
    "create_cache",
    "get_cache",
    "KVCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheStorageError",
    "InvalidArgumentError",
    "InvalidKeyError",
    "InvalidTTLError",
    "InvalidValueError",
    "InvalidBatchInputError",
]
