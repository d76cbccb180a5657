"""
kvcache — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import KVCacheConfig

logger = logging.getLogger(__name__)

_config_instance: KVCacheConfig | None = None


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> KVCacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated KVCacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        logger.info("Loading environment from %s", env_path)
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                "Failed to load .env file from %s: %s",
                env_path,
                e,
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    try:
        config_dict = {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "cache": {
                "backend": os.getenv("CACHE_BACKEND", "memory"),
                "namespace": os.getenv("CACHE_NAMESPACE", "kvcache"),
                "cache_dir": os.getenv("CACHE_DIR", "/tmp/kvcache"),
                "redis_url": os.getenv("REDIS_URL"),
                "redis_socket_timeout": int(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
                "dynamodb_table": os.getenv("DYNAMODB_TABLE"),
                "aws_region": os.getenv("AWS_REGION"),
                "dynamodb_endpoint": os.getenv("DYNAMODB_ENDPOINT"),
                "aws_access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
                "aws_secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
                "read_batch_limit": int(os.getenv("DYNAMODB_READ_BATCH_LIMIT", "100")),
                "write_batch_limit": int(os.getenv("DYNAMODB_WRITE_BATCH_LIMIT", "25")),
            },
        }
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid numeric setting in environment: {e}",
            details={"error": str(e)},
        ) from e

    try:
        _config_instance = KVCacheConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            "Configuration loaded successfully (environment: %s)",
            _config_instance.environment,
            extra={"environment": _config_instance.environment, "cache_backend": _config_instance.cache.backend},
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            "Configuration validation failed: %s",
            e,
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
            exc_info=True,
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> KVCacheConfig:
    """
    Get the current configuration instance.

    Loads it from the environment on first access.
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> KVCacheConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded KVCacheConfig instance
    """
    return load_config(env_file=env_file, reload=True)
