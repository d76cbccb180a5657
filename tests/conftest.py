"""
kvcache — Test Configuration and Shared Fixtures

Provides a controllable clock, in-process fakes for the Redis and DynamoDB
clients, and one fixture per backend so contract tests can run against all
four.
"""

import fnmatch
import os
import time
from collections.abc import Callable, Generator, Iterator
from typing import Any

import pytest
from botocore.exceptions import ClientError

from kvcache.cache.backends.dynamodb import DynamoDBCacheBackend
from kvcache.cache.backends.file import FileCacheBackend
from kvcache.cache.backends.memory import MemoryCacheBackend
from kvcache.cache.backends.shared import SharedMemoryCacheBackend
from kvcache.cache.interface import CacheInterface

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

TEST_TABLE = "kv-cache-test"


# ------------ Clock ------------


class FrozenClock:
    """Replacement for time.time() that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FrozenClock:
    """Freeze time.time() for the duration of a test."""
    frozen = FrozenClock()
    monkeypatch.setattr(time, "time", frozen)
    return frozen


# ------------ Fake Redis ------------


class FakeRedis:
    """Minimal synchronous stand-in for redis.Redis (bytes in, bytes out)."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self.closed = False

    def _alive(self, name: str) -> bool:
        entry = self._data.get(name)
        if entry is None:
            return False
        _, expires_at = entry
        if expires_at is not None and expires_at <= time.time():
            del self._data[name]
            return False
        return True

    def get(self, name: str) -> bytes | None:
        return self._data[name][0] if self._alive(name) else None

    def set(self, name: str, value: bytes, ex: int | None = None, exat: int | None = None) -> bool:
        if exat:
            expires_at: float | None = exat
        else:
            expires_at = time.time() + ex if ex else None
        self._data[name] = (value, expires_at)
        return True

    def delete(self, *names: str) -> int:
        count = 0
        for name in names:
            if self._alive(name):
                count += 1
            self._data.pop(name, None)
        return count

    def exists(self, *names: str) -> int:
        return sum(1 for name in names if self._alive(name))

    def scan_iter(self, match: str = "*", count: int | None = None) -> Iterator[str]:
        yield from [name for name in list(self._data) if fnmatch.fnmatchcase(name, match)]

    def close(self) -> None:
        self.closed = True


# ------------ Fake DynamoDB ------------


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class _FakeWaiter:
    def __init__(self, client: "FakeDynamoDBClient", name: str) -> None:
        self.client = client
        self.name = name

    def wait(self, **kwargs: Any) -> None:
        self.client.calls.append((f"waiter:{self.name}", kwargs))


class FakeDynamoDBClient:
    """
    In-process stand-in for boto3.client("dynamodb").

    Speaks the low-level attribute-value format, enforces the real batch
    limits (100 keys per BatchGetItem, 25 requests per BatchWriteItem, no
    duplicate keys), paginates Scan with LastEvaluatedKey and records every
    call in `calls`.

    Knobs for failure tests:
    - unprocessed_writes / unprocessed_reads: number of responses that hand
      back their last request as unprocessed
    - fail_batch_write_on: 1-based BatchWriteItem call number that raises
    - fail_operations: operation names that raise a ClientError
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {TEST_TABLE: {}}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.unprocessed_writes = 0
        self.unprocessed_reads = 0
        self.fail_batch_write_on: int | None = None
        self.fail_operations: set[str] = set()
        self._batch_write_count = 0

    def _record(self, operation: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((operation, kwargs))
        if operation in self.fail_operations:
            raise _client_error("InternalServerError", operation)

    def _table(self, name: str, operation: str) -> dict[str, dict[str, Any]]:
        if name not in self.tables:
            raise _client_error("ResourceNotFoundException", operation, f"Table {name} not found")
        return self.tables[name]

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.calls if op == operation]

    def get_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("GetItem", kwargs)
        table = self._table(kwargs["TableName"], "GetItem")
        item = table.get(kwargs["Key"]["id"]["S"])
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("PutItem", kwargs)
        table = self._table(kwargs["TableName"], "PutItem")
        item = kwargs["Item"]
        table[item["id"]["S"]] = dict(item)
        return {}

    def delete_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("DeleteItem", kwargs)
        table = self._table(kwargs["TableName"], "DeleteItem")
        table.pop(kwargs["Key"]["id"]["S"], None)
        return {}

    def scan(self, **kwargs: Any) -> dict[str, Any]:
        self._record("Scan", kwargs)
        table = self._table(kwargs["TableName"], "Scan")
        limit = kwargs.get("Limit", len(table) or 1)

        ids = sorted(table)
        start = kwargs.get("ExclusiveStartKey")
        if start is not None:
            ids = [i for i in ids if i > start["id"]["S"]]

        page = ids[:limit]
        result: dict[str, Any] = {
            "Items": [{"id": {"S": i}} for i in page],
            "Count": len(page),
        }
        # Like DynamoDB, a full page always carries a cursor, even if nothing follows.
        if len(page) == limit:
            result["LastEvaluatedKey"] = {"id": {"S": page[-1]}}
        return result

    def batch_write_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("BatchWriteItem", kwargs)
        self._batch_write_count += 1
        if self.fail_batch_write_on == self._batch_write_count:
            raise _client_error("ProvisionedThroughputExceededException", "BatchWriteItem")

        unprocessed: dict[str, list[dict[str, Any]]] = {}
        for table_name, requests in kwargs["RequestItems"].items():
            table = self._table(table_name, "BatchWriteItem")
            if len(requests) > 25:
                raise _client_error("ValidationException", "BatchWriteItem", "Too many items")
            ids = [r["PutRequest"]["Item"]["id"]["S"] for r in requests]
            if len(ids) != len(set(ids)):
                raise _client_error("ValidationException", "BatchWriteItem", "Duplicate keys")

            if self.unprocessed_writes > 0:
                self.unprocessed_writes -= 1
                unprocessed[table_name] = requests[-1:]
                requests = requests[:-1]

            for request in requests:
                item = request["PutRequest"]["Item"]
                table[item["id"]["S"]] = dict(item)

        return {"UnprocessedItems": unprocessed}

    def batch_get_item(self, **kwargs: Any) -> dict[str, Any]:
        self._record("BatchGetItem", kwargs)
        responses: dict[str, list[dict[str, Any]]] = {}
        unprocessed: dict[str, Any] = {}

        for table_name, request in kwargs["RequestItems"].items():
            table = self._table(table_name, "BatchGetItem")
            keys = request["Keys"]
            if len(keys) > 100:
                raise _client_error("ValidationException", "BatchGetItem", "Too many keys")
            ids = [k["id"]["S"] for k in keys]
            if len(ids) != len(set(ids)):
                raise _client_error("ValidationException", "BatchGetItem", "Duplicate keys")

            if self.unprocessed_reads > 0:
                self.unprocessed_reads -= 1
                unprocessed[table_name] = {**request, "Keys": keys[-1:]}
                ids = ids[:-1]

            # Responses come back in no particular order
            responses[table_name] = [dict(table[i]) for i in reversed(ids) if i in table]

        return {"Responses": responses, "UnprocessedKeys": unprocessed}

    def create_table(self, **kwargs: Any) -> dict[str, Any]:
        self._record("CreateTable", kwargs)
        name = kwargs["TableName"]
        if name in self.tables:
            raise _client_error("ResourceInUseException", "CreateTable", f"Table already exists: {name}")
        self.tables[name] = {}
        return {"TableDescription": {"TableName": name, "TableStatus": "CREATING"}}

    def get_waiter(self, name: str) -> _FakeWaiter:
        return _FakeWaiter(self, name)


# ------------ Backend fixtures ------------


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def dynamodb_client() -> FakeDynamoDBClient:
    return FakeDynamoDBClient()


@pytest.fixture
def cache_dir(tmp_path: Any) -> str:
    """Directory path for the file backend (not created yet)."""
    return str(tmp_path / "cache")


BACKEND_NAMES = ["memory", "file", "shared", "dynamodb"]


@pytest.fixture
def make_backend(
    cache_dir: str,
    fake_redis: FakeRedis,
    dynamodb_client: FakeDynamoDBClient,
) -> Callable[[str], CacheInterface]:
    """Build any backend by name, wired to the per-test fakes."""

    def _make(name: str) -> CacheInterface:
        if name == "memory":
            return MemoryCacheBackend()
        if name == "file":
            return FileCacheBackend(cache_dir)
        if name == "shared":
            return SharedMemoryCacheBackend(fake_redis, namespace="test")
        if name == "dynamodb":
            return DynamoDBCacheBackend(TEST_TABLE, client=dynamodb_client)
        raise ValueError(f"unknown backend {name}")

    return _make


@pytest.fixture(params=BACKEND_NAMES)
def any_cache(request: pytest.FixtureRequest, make_backend: Callable[[str], CacheInterface]) -> CacheInterface:
    """Parametrized fixture yielding each backend in turn."""
    return make_backend(request.param)


@pytest.fixture(autouse=True)
def reset_cache_factory() -> Generator[None, None, None]:
    """Reset cache factory after each test to prevent state leakage."""
    yield
    from kvcache.cache.factory import reset_cache_factory

    reset_cache_factory()


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop the config singleton so each test loads its own environment."""
    import kvcache.config.loader as loader

    monkeypatch.setattr(loader, "_config_instance", None)
    yield
