"""
kvcache — DynamoDB Cache Backend

Cache backed by a DynamoDB table with a single string hash key `id`.
Each record is one item:

    {"id": S, "value": B (pickled), "expiry": N (omitted when never-expiring)}

DynamoDB charges per call and caps batch sizes, so multi-key operations are
split into chunks and sent one chunk at a time:
- get_multiple  -> BatchGetItem, read_batch_limit keys per call (max 100)
- set_multiple  -> BatchWriteItem, write_batch_limit puts per call (max 25)
- clear         -> Scan pages of read_batch_limit items, following
                   LastEvaluatedKey, with one DeleteItem per item found

There is no native truncate, so clear() is O(N) deletes. It is meant for
administration and tests, not hot paths.

set_multiple is NOT atomic: if a chunk fails, the chunks before it stay
written and CacheStorageError reports how many made it.

Example:
    cache = DynamoDBCacheBackend("kv-cache", region_name="us-west-1")
    cache.set_multiple({f"k{i}": i for i in range(60)}, ttl=300)
    cache.get_multiple(["k1", "k2", "missing"], default=0)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from ...errors import CacheStorageError
from .. import serialization
from ..batching import chunked, unique_in_order
from ..expiry import compute_expiry, is_live
from ..interface import CacheInterface
from ..validation import ensure_valid_items, ensure_valid_key, ensure_valid_keys, ensure_valid_ttl, ensure_valid_value

logger = logging.getLogger(__name__)

try:
    import boto3
    from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer
    from botocore.exceptions import BotoCoreError, ClientError
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "boto3 is required for the DynamoDB cache backend but is not installed. "
        "Install with: pip install 'boto3>=1.34' or add 'boto3' to your dependencies."
    ) from e

API_VERSION = "2012-08-10"

MAX_READ_BATCH_LIMIT = 100
MAX_WRITE_BATCH_LIMIT = 25
MAX_UNPROCESSED_ROUNDS = 5

# Reference schema; provision with create_table() or your own IaC.
DYNAMODB_TABLE_SCHEMA: dict[str, Any] = {
    "AttributeDefinitions": [
        {"AttributeName": "id", "AttributeType": "S"},
    ],
    "KeySchema": [
        {"AttributeName": "id", "KeyType": "HASH"},
    ],
    "ProvisionedThroughput": {
        "ReadCapacityUnits": 5,
        "WriteCapacityUnits": 5,
    },
}


class DynamoDBCacheBackend(CacheInterface):
    """
    DynamoDB cache backend with chunked batch operations.

    The driver is a stateless accessor: the table owns the records and may
    be shared by any number of processes (last writer wins).
    """

    backend_name = "dynamodb"
    storage_errors = (BotoCoreError, ClientError)

    def __init__(
        self,
        table: str,
        client: Any | None = None,
        read_batch_limit: int = MAX_READ_BATCH_LIMIT,
        write_batch_limit: int = MAX_WRITE_BATCH_LIMIT,
        **client_config: Any,
    ) -> None:
        """
        Initialize DynamoDB cache backend.

        Args:
            table: Table name
            client: Low-level DynamoDB client; built with boto3 when omitted
            read_batch_limit: Keys per BatchGetItem call and items per Scan page
            write_batch_limit: Items per BatchWriteItem call
            **client_config: Forwarded verbatim to boto3.client("dynamodb")
                (region_name, endpoint_url, aws_access_key_id, ...)
        """
        if not table:
            raise ValueError("table is required")

        super().__init__()
        self.table = table

        if client is None:
            client = boto3.client("dynamodb", api_version=API_VERSION, **client_config)
        self._client = client

        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

        self._read_batch_limit = MAX_READ_BATCH_LIMIT
        self._write_batch_limit = MAX_WRITE_BATCH_LIMIT
        self.read_batch_limit = read_batch_limit
        self.write_batch_limit = write_batch_limit

    # ------------ Batch limits ------------

    @property
    def read_batch_limit(self) -> int:
        """Keys per BatchGetItem call, also used as the Scan page size."""
        return self._read_batch_limit

    @read_batch_limit.setter
    def read_batch_limit(self, value: int) -> None:
        self._read_batch_limit = self._check_limit("read_batch_limit", value, MAX_READ_BATCH_LIMIT)

    @property
    def write_batch_limit(self) -> int:
        """Put requests per BatchWriteItem call."""
        return self._write_batch_limit

    @write_batch_limit.setter
    def write_batch_limit(self, value: int) -> None:
        self._write_batch_limit = self._check_limit("write_batch_limit", value, MAX_WRITE_BATCH_LIMIT)

    @staticmethod
    def _check_limit(name: str, value: int, maximum: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= maximum:
            raise ValueError(f"{name} must be an integer between 1 and {maximum}, got {value!r}")
        return value

    # ------------ Marshalling ------------

    def _marshal_key(self, key: str) -> dict[str, Any]:
        return {"id": self._serializer.serialize(key)}

    def _marshal_item(self, key: str, value: Any, expiry: int) -> dict[str, Any]:
        data: dict[str, Any] = {"id": key, "value": serialization.dumps(value)}
        if expiry:
            data["expiry"] = expiry
        return {name: self._serializer.serialize(attr) for name, attr in data.items()}

    def _unmarshal_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {name: self._deserializer.deserialize(attr) for name, attr in item.items()}

    def _live_value(self, item: Mapping[str, Any]) -> tuple[bool, str, Any]:
        """Decode a raw item into (live, key, value)."""
        record = self._unmarshal_item(item)
        expiry = int(record.get("expiry", 0))
        if not is_live(expiry):
            return False, record["id"], None

        raw = record["value"]
        data = raw.value if isinstance(raw, Binary) else raw
        return True, record["id"], serialization.loads(data)

    # ------------ Core Interface ------------

    def get(self, key: str, default: Any = None) -> Any:
        """Fetch one item; missing or expired items return default."""
        ensure_valid_key(key)

        with self._storage_operation("get", key=key):
            result = self._client.get_item(
                TableName=self.table,
                Key=self._marshal_key(key),
                ConsistentRead=True,
            )

        item = result.get("Item") if result else None
        if item is None:
            self._misses += 1
            return default

        live, _, value = self._live_value(item)
        if not live:
            self._misses += 1
            return default

        self._hits += 1
        return value

    def set(self, key: str, value: Any, ttl: int | timedelta | None = None) -> bool:
        """Upsert one item. The expiry attribute is omitted for never-expiring records."""
        ensure_valid_key(key)
        seconds = ensure_valid_ttl(ttl)
        ensure_valid_value(key, value)

        item = self._marshal_item(key, value, compute_expiry(seconds))
        with self._storage_operation("set", key=key, ttl=seconds):
            self._client.put_item(TableName=self.table, Item=item)

        self._sets += 1
        return True

    def delete(self, key: str) -> bool:
        """Delete one item. Idempotent: missing keys are not an error."""
        ensure_valid_key(key)
        self._delete_item(key)
        return True

    def _delete_item(self, key: str) -> None:
        with self._storage_operation("delete", key=key):
            self._client.delete_item(TableName=self.table, Key=self._marshal_key(key))
        self._deletes += 1

    def has(self, key: str) -> bool:
        """
        Check if a key has a live item.

        Delegates to get(), so it costs a full read and may report a key
        that another writer deletes right afterwards.
        """
        missing = object()
        return self.get(key, missing) is not missing

    def clear(self) -> bool:
        """
        Delete every item in the table.

        Scans in pages of read_batch_limit items, following the
        LastEvaluatedKey cursor until a page comes back without one, and
        deletes each item found individually.
        """
        params: dict[str, Any] = {
            "TableName": self.table,
            "Limit": self.read_batch_limit,
            "ProjectionExpression": "#id",
            "ExpressionAttributeNames": {"#id": "id"},
        }
        deleted = 0
        pages = 0

        while True:
            with self._storage_operation("clear", page=pages):
                result = self._client.scan(**params)
            pages += 1

            for item in result.get("Items", []):
                key = self._deserializer.deserialize(item["id"])
                self._delete_item(key)
                deleted += 1

            last_key = result.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key

        logger.info(
            "Cleared %d items from DynamoDB table '%s' in %d scan page(s)",
            deleted,
            self.table,
            pages,
            extra={"table": self.table, "deleted": deleted, "pages": pages},
        )
        return True

    def get_stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        stats = self._base_stats()
        stats.update(
            {
                "table": self.table,
                "read_batch_limit": self.read_batch_limit,
                "write_batch_limit": self.write_batch_limit,
            }
        )
        return stats

    # ------------ Batch operations ------------

    def set_multiple(
        self,
        values: Mapping[str, Any] | Iterable[tuple[str, Any]],
        ttl: int | timedelta | None = None,
    ) -> bool:
        """
        Store many items with BatchWriteItem, write_batch_limit items per call.

        Every key and value is validated before the first call. All items
        share one expiry. Chunks are written sequentially; if one fails the
        earlier chunks remain written (no rollback).

        Returns:
            True once every chunk has been written

        Raises:
            InvalidTTLError / InvalidKeyError / InvalidValueError: nothing written
            CacheStorageError: a chunk failed; details["chunks_written"] tells
                how many chunks were committed before it
        """
        seconds = ensure_valid_ttl(ttl)
        items = ensure_valid_items(values)
        for key, value in items:
            ensure_valid_value(key, value)

        expiry = compute_expiry(seconds)
        # A batch may not name the same key twice; the last value wins.
        requests = [
            {"PutRequest": {"Item": self._marshal_item(key, value, expiry)}} for key, value in dict(items).items()
        ]

        for index, chunk in enumerate(chunked(requests, self.write_batch_limit)):
            with self._storage_operation(
                "set_multiple",
                chunk=index,
                chunks_written=index,
                item_count=len(requests),
            ):
                self._write_chunk(chunk, index)
            self._sets += len(chunk)

        logger.debug(
            "Wrote %d items to DynamoDB table '%s'",
            len(requests),
            self.table,
            extra={"table": self.table, "item_count": len(requests), "ttl": seconds},
        )
        return True

    def _write_chunk(self, chunk: list[dict[str, Any]], index: int) -> None:
        """Send one BatchWriteItem call, re-sending any UnprocessedItems."""
        request_items: dict[str, Any] = {self.table: chunk}

        for attempt in range(MAX_UNPROCESSED_ROUNDS + 1):
            result = self._client.batch_write_item(RequestItems=request_items)
            request_items = result.get("UnprocessedItems") or {}
            if not request_items:
                return

            logger.warning(
                "DynamoDB left %d write(s) unprocessed in chunk %d, resubmitting",
                len(request_items.get(self.table, [])),
                index,
                extra={"table": self.table, "chunk": index, "attempt": attempt + 1},
            )

        raise CacheStorageError(
            self.backend_name,
            "set_multiple",
            f"DynamoDB left writes unprocessed after {MAX_UNPROCESSED_ROUNDS} resubmissions",
            details={
                "chunk": index,
                "chunks_written": index,
                "unprocessed": len(request_items.get(self.table, [])),
            },
        )

    def get_multiple(self, keys: Iterable[str], default: Any = None) -> dict[str, Any]:
        """
        Fetch many items with BatchGetItem, read_batch_limit keys per call.

        Every requested key is present in the result, in input order; keys
        that are missing or expired map to default.

        Raises:
            InvalidBatchInputError: If keys is not an iterable or is empty
            InvalidKeyError: If any key is invalid (nothing is read)
        """
        key_list = ensure_valid_keys(keys)

        results: dict[str, Any] = dict.fromkeys(key_list, default)
        unique_keys = unique_in_order(key_list)
        found: set[str] = set()

        for index, chunk in enumerate(chunked(unique_keys, self.read_batch_limit)):
            with self._storage_operation("get_multiple", chunk=index, key_count=len(unique_keys)):
                items = self._read_chunk(chunk, index)

            for item in items:
                live, key, value = self._live_value(item)
                if live and key in results:
                    results[key] = value
                    found.add(key)

        self._hits += len(found)
        self._misses += len(unique_keys) - len(found)
        return results

    def _read_chunk(self, chunk: list[str], index: int) -> list[dict[str, Any]]:
        """Send one BatchGetItem call, re-requesting any UnprocessedKeys."""
        request_items: dict[str, Any] = {
            self.table: {
                "Keys": [self._marshal_key(key) for key in chunk],
                "ConsistentRead": True,
            }
        }
        items: list[dict[str, Any]] = []

        for attempt in range(MAX_UNPROCESSED_ROUNDS + 1):
            result = self._client.batch_get_item(RequestItems=request_items)
            items.extend(result.get("Responses", {}).get(self.table, []))

            request_items = result.get("UnprocessedKeys") or {}
            if not request_items:
                return items

            logger.warning(
                "DynamoDB left %d key(s) unprocessed in chunk %d, re-requesting",
                len(request_items.get(self.table, {}).get("Keys", [])),
                index,
                extra={"table": self.table, "chunk": index, "attempt": attempt + 1},
            )

        raise CacheStorageError(
            self.backend_name,
            "get_multiple",
            f"DynamoDB left keys unprocessed after {MAX_UNPROCESSED_ROUNDS} re-requests",
            details={"chunk": index, "unprocessed": len(request_items.get(self.table, {}).get("Keys", []))},
        )

    # ------------ Provisioning ------------

    def create_table(self, wait: bool = True) -> bool:
        """
        Create the cache table from DYNAMODB_TABLE_SCHEMA.

        Args:
            wait: Block until the table exists

        Returns:
            True if the table was created, False if it already existed
        """
        created = True
        try:
            self._client.create_table(TableName=self.table, **DYNAMODB_TABLE_SCHEMA)
            logger.info("Created DynamoDB table '%s'", self.table)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ResourceInUseException":
                logger.error(
                    "Failed to create DynamoDB table '%s': %s",
                    self.table,
                    e,
                    extra={"table": self.table, "error": str(e)},
                    exc_info=True,
                )
                raise CacheStorageError(self.backend_name, "create_table", details={"error": str(e)}) from e
            logger.info("DynamoDB table '%s' already exists", self.table)
            created = False

        if wait:
            with self._storage_operation("create_table"):
                self._client.get_waiter("table_exists").wait(TableName=self.table)

        return created
