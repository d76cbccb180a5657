#!/usr/bin/env python3
"""
kvcache - DynamoDB Table Provisioning

Creates the cache table described by DYNAMODB_TABLE_SCHEMA using the
environment configuration (DYNAMODB_TABLE, AWS_REGION, DYNAMODB_ENDPOINT,
AWS credentials). An existing table is left untouched.

Example (DynamoDB Local):
    DYNAMODB_TABLE=kv-cache AWS_REGION=us-west-1 \
    DYNAMODB_ENDPOINT=http://localhost:8000 python scripts/init_dynamodb_table.py
"""

import sys

from kvcache.cache.backends.dynamodb import DynamoDBCacheBackend
from kvcache.config import load_config
from kvcache.errors import KVCacheError
from kvcache.logging_config import configure_logging


def main() -> int:
    """Provision the cache table; return a process exit code."""
    try:
        config = load_config()
    except KVCacheError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    configure_logging(config.log_level, json_format=False)

    table = config.cache.dynamodb_table
    if not table:
        print("DYNAMODB_TABLE must be set", file=sys.stderr)
        return 1

    cache = DynamoDBCacheBackend(table, **config.cache.dynamodb_client_config())
    try:
        created = cache.create_table()
    except KVCacheError as e:
        print(f"Failed to create table '{table}': {e.message}", file=sys.stderr)
        return 1

    print("done" if created else f"table '{table}' already exists")
    return 0


if __name__ == "__main__":
    sys.exit(main())
