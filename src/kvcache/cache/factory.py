"""
kvcache — Cache Factory

Canonical factory for creating cache instances based on configuration.

Key points:
- Select the backend with CACHE_BACKEND=memory|shared|file|dynamodb
  (defaults to memory)
- shared needs the redis client and REDIS_URL; dynamodb needs boto3 and
  DYNAMODB_TABLE. Both are imported only when selected.
- All configuration is typed and validated via Pydantic models

Examples:
    from kvcache.cache.factory import create_cache, get_cache

    # Uses env-configured backend (memory by default)
    cache = create_cache()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from kvcache.config import CacheConfig, CacheBackend
    cfg = CacheConfig(backend=CacheBackend.FILE, cache_dir="/tmp/my-cache")
    file_cache = create_cache(cfg, name="files")
"""

from __future__ import annotations

import logging

from ..config import CacheBackend, CacheConfig, get_config
from ..errors import ConfigurationError
from .backends.file import FileCacheBackend
from .backends.memory import MemoryCacheBackend
from .interface import CacheInterface

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, CacheInterface] = {}


def _create_memory_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a memory cache backend."""
    return MemoryCacheBackend()


def _create_file_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a filesystem cache backend."""
    return FileCacheBackend(cache_dir=config.cache_dir)


def _create_shared_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a shared-memory (Redis) backend with lazy import."""
    if not config.redis_url:
        raise ConfigurationError(
            "REDIS_URL must be set when CACHE_BACKEND=shared",
            details={"env": "REDIS_URL", "backend": "shared"},
        )

    try:
        from redis import Redis

        from .backends.shared import SharedMemoryCacheBackend
    except ImportError as e:
        logger.error(
            "Shared backend selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Shared backend selected but redis client is unavailable. "
            "Install with: pip install 'redis>=5.0.0' or add to dependencies.",
            details={"package": "redis>=5.0.0", "error": str(e), "backend": "shared"},
        ) from e

    client = Redis.from_url(config.redis_url, socket_timeout=config.redis_socket_timeout)
    return SharedMemoryCacheBackend(client, namespace=config.namespace, owns_client=True)


def _create_dynamodb_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a DynamoDB backend with lazy import."""
    if not config.dynamodb_table:
        raise ConfigurationError(
            "DYNAMODB_TABLE must be set when CACHE_BACKEND=dynamodb",
            details={"env": "DYNAMODB_TABLE", "backend": "dynamodb"},
        )

    try:
        from .backends.dynamodb import DynamoDBCacheBackend
    except ImportError as e:
        logger.error(
            "DynamoDB backend selected but boto3 is not installed",
            extra={"package": "boto3", "error": str(e)},
        )
        raise ConfigurationError(
            "DynamoDB backend selected but boto3 is unavailable. Install with: pip install boto3",
            details={"package": "boto3", "error": str(e), "backend": "dynamodb"},
        ) from e

    return DynamoDBCacheBackend(
        config.dynamodb_table,
        read_batch_limit=config.read_batch_limit,
        write_batch_limit=config.write_batch_limit,
        **config.dynamodb_client_config(),
    )


_BUILDERS = {
    CacheBackend.MEMORY: _create_memory_cache,
    CacheBackend.FILE: _create_file_cache,
    CacheBackend.SHARED: _create_shared_cache,
    CacheBackend.DYNAMODB: _create_dynamodb_cache,
}


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheInterface:
    """
    Create a cache backend instance based on configuration.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Cache instance name (for multiple cache instances)

    Returns:
        Configured cache backend instance; an existing instance registered
        under the same name is returned as-is

    Raises:
        ConfigurationError: If cache configuration is invalid or backend unavailable
    """
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    if config is None:
        config = get_config().cache

    backend = CacheBackend(config.backend)
    logger.info(
        "Creating cache instance '%s' with backend: %s",
        name,
        backend.value,
        extra={"cache_name": name, "backend": backend.value},
    )

    builder = _BUILDERS.get(backend)
    if builder is None:
        raise ConfigurationError(
            f"Unknown cache backend: {backend.value}",
            details={"backend": backend.value, "supported": [b.value for b in _BUILDERS]},
        )

    try:
        cache = builder(config)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating cache instance '%s': %s",
            name,
            e,
            extra={"cache_name": name, "backend": backend.value, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache instance '{name}': {e}",
            details={"cache_name": name, "backend": backend.value, "error": str(e)},
        ) from e

    _cache_instances[name] = cache
    logger.info(
        "Cache instance '%s' created successfully",
        name,
        extra={"cache_name": name, "backend": backend.value},
    )
    return cache


def get_cache(name: str = "default") -> CacheInterface:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it is created from the global configuration.
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


def close_all_caches() -> None:
    """
    Close all cache instances and release resources.

    Call during graceful shutdown. A failing close() is logged and the
    remaining instances are still closed.
    """
    if not _cache_instances:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        try:
            cache.close()
            logger.info("Closed cache instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()
    logger.info("All cache instances closed")


def reset_cache_factory() -> None:
    """
    Reset the cache factory by clearing all instance references.

    Does NOT call close() on instances - use close_all_caches() for proper cleanup.
    Only use this in testing contexts.
    """
    count = len(_cache_instances)
    _cache_instances.clear()
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """List all registered cache instance names."""
    return list(_cache_instances.keys())
