"""
kvcache — Cache Module

Key-value caching with interchangeable backends.

- factory.py: creates and registers backend instances from configuration
- interface.py: abstract interface every backend implements
- validation.py / expiry.py: key/TTL/value checks and expiry rules shared by all backends
- backends/: memory, file, shared (redis) and DynamoDB implementations

Usage:
    from kvcache.cache import create_cache

    cache = create_cache()
    cache.set("key", "value", ttl=3600)
    value = cache.get("key", default="missing")
"""

from .expiry import compute_expiry, is_live
from .factory import (
    close_all_caches,
    create_cache,
    get_cache,
    list_cache_instances,
    reset_cache_factory,
)
from .interface import CacheInterface
from .validation import is_valid_key, is_valid_ttl, is_valid_value

__all__ = [
    # Factory functions
    "create_cache",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Interface
    "CacheInterface",
    # Shared rules
    "compute_expiry",
    "is_live",
    "is_valid_key",
    "is_valid_ttl",
    "is_valid_value",
]
