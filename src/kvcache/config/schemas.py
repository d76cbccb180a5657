"""
kvcache — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration is read from environment variables by the loader and
validated here.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class CacheBackend(str, Enum):
    """Supported cache backends."""

    MEMORY = "memory"
    SHARED = "shared"  # Requires redis
    FILE = "file"
    DYNAMODB = "dynamodb"  # Requires boto3


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Cache configuration."""

    backend: CacheBackend = Field(default=CacheBackend.MEMORY, description="Cache backend to use")
    namespace: str = Field(default="kvcache", description="Key prefix (shared backend)")

    # File-specific settings (only used when backend=file)
    cache_dir: str = Field(default="/tmp/kvcache", description="Directory holding one file per key")

    # Shared-store settings (only used when backend=shared)
    redis_url: str | None = Field(default=None, description="Redis connection URL")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    # DynamoDB settings (only used when backend=dynamodb)
    dynamodb_table: str | None = Field(default=None, description="DynamoDB table name")
    aws_region: str | None = Field(default=None, description="AWS region of the table")
    dynamodb_endpoint: str | None = Field(default=None, description="Custom endpoint (e.g. DynamoDB Local)")
    aws_access_key_id: str | None = Field(default=None, description="AWS access key id")
    aws_secret_access_key: str | None = Field(default=None, description="AWS secret access key")
    read_batch_limit: int = Field(default=100, ge=1, le=100, description="Keys per BatchGetItem / Scan page")
    write_batch_limit: int = Field(default=25, ge=1, le=25, description="Items per BatchWriteItem")

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None, info: Any) -> str | None:
        """Ensure redis_url is provided when backend is shared."""
        backend = info.data.get("backend")
        if backend == CacheBackend.SHARED and not v:
            raise ValueError("redis_url is required when cache backend is 'shared'")
        return v

    @field_validator("dynamodb_table")
    @classmethod
    def validate_dynamodb_table(cls, v: str | None, info: Any) -> str | None:
        """Ensure dynamodb_table is provided when backend is dynamodb."""
        backend = info.data.get("backend")
        if backend == CacheBackend.DYNAMODB and not v:
            raise ValueError("dynamodb_table is required when cache backend is 'dynamodb'")
        return v

    def dynamodb_client_config(self) -> dict[str, Any]:
        """Connectivity settings forwarded verbatim to boto3.client('dynamodb')."""
        config = {
            "region_name": self.aws_region,
            "endpoint_url": self.dynamodb_endpoint,
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
        }
        return {k: v for k, v in config.items() if v is not None}


class KVCacheConfig(BaseModel):
    """Root configuration for kvcache."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
