"""
kvcache — Shared-Memory (Redis) Cache Backend Tests

Runs against an in-process FakeRedis; the live tests at the bottom need a
Redis server on localhost:6379 (or TEST_REDIS_URL) and are skipped otherwise.
"""

import os
import pickle
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from kvcache.cache.backends.shared import SharedMemoryCacheBackend
from kvcache.errors import CacheStorageError, InvalidKeyError

# Check if Redis is available
try:
    import socket

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    redis_available = sock.connect_ex(("localhost", 6379)) == 0
    sock.close()
except OSError:
    redis_available = False


class TestSharedMemoryCacheBackend:
    """Test suite for SharedMemoryCacheBackend."""

    @pytest.fixture
    def cache(self, fake_redis: Any) -> SharedMemoryCacheBackend:
        return SharedMemoryCacheBackend(fake_redis, namespace="test")

    def test_requires_client(self) -> None:
        with pytest.raises(ValueError):
            SharedMemoryCacheBackend(None)  # type: ignore[arg-type]

    def test_blank_namespace_falls_back(self, fake_redis: Any) -> None:
        assert SharedMemoryCacheBackend(fake_redis, namespace="  ").namespace == "kvcache"

    @pytest.mark.parametrize("namespace", ["app*", "a?b", "[ab]", "ns:sub", "has space"])
    def test_rejects_namespace_outside_key_syntax(self, fake_redis: Any, namespace: str) -> None:
        with pytest.raises(ValueError):
            SharedMemoryCacheBackend(fake_redis, namespace=namespace)

    def test_values_stored_pickled_under_namespace(self, cache: SharedMemoryCacheBackend, fake_redis: Any) -> None:
        cache.set("key1", {"a": [1, 2]})
        assert pickle.loads(fake_redis.get("test:key1")) == {"a": [1, 2]}

    def test_ttl_delegated_to_store(self, clock) -> None:
        client = MagicMock()
        cache = SharedMemoryCacheBackend(client, namespace="ns")

        cache.set("a", 1, ttl=30)
        cache.set("b", 1, ttl=0)
        cache.set("c", 1)

        # deadline is one second past the last live second
        assert [c.kwargs["exat"] for c in client.set.call_args_list] == [int(clock.now) + 31, None, None]
        assert client.set.call_args_list[0].args[0] == "ns:a"

    def test_store_expiry_is_authoritative(self, cache: SharedMemoryCacheBackend, clock) -> None:
        cache.set("short", "v", ttl=2)
        clock.advance(1)
        assert cache.has("short") is True
        clock.advance(2)
        assert cache.has("short") is False
        assert cache.get("short", "D") == "D"

    def test_visible_through_last_second(self, cache: SharedMemoryCacheBackend, clock) -> None:
        cache.set("edge", "v", ttl=10)
        clock.advance(10.5)
        assert cache.get("edge", "D") == "v"
        clock.advance(0.5)
        assert cache.get("edge", "D") == "D"

    def test_delete_missing_key_succeeds(self, cache: SharedMemoryCacheBackend) -> None:
        assert cache.delete("missing") is True
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is True
        assert cache.get_stats()["deletes"] == 1

    def test_clear_only_touches_namespace(self, fake_redis: Any) -> None:
        ours = SharedMemoryCacheBackend(fake_redis, namespace="ours")
        theirs = SharedMemoryCacheBackend(fake_redis, namespace="theirs")
        for i in range(1500):
            ours.set(f"k{i}", i)
        theirs.set("k1", "keep")

        assert ours.clear() is True
        assert ours.get("k1") is None
        assert ours.get("k1499") is None
        assert theirs.get("k1") == "keep"
        assert ours.get_stats()["deletes"] == 1500

    def test_redis_errors_become_storage_errors(self) -> None:
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("connection refused")
        cache = SharedMemoryCacheBackend(client)

        with pytest.raises(CacheStorageError) as exc_info:
            cache.get("k")
        assert exc_info.value.backend == "shared"
        assert exc_info.value.operation == "get"

    def test_invalid_key_never_reaches_client(self) -> None:
        client = MagicMock()
        cache = SharedMemoryCacheBackend(client)
        for op in (cache.get, cache.has, cache.delete):
            with pytest.raises(InvalidKeyError):
                op("p#t")
        with pytest.raises(InvalidKeyError):
            cache.set("p#t", 1)
        assert client.mock_calls == []

    def test_close_respects_ownership(self, fake_redis: Any) -> None:
        SharedMemoryCacheBackend(fake_redis).close()
        assert fake_redis.closed is False

        SharedMemoryCacheBackend(fake_redis, owns_client=True).close()
        assert fake_redis.closed is True


@pytest.mark.skipif(not redis_available, reason="Redis server not available")
class TestSharedMemoryCacheBackendLive:
    """Round trips against a real Redis server (database 15)."""

    @pytest.fixture
    def cache(self) -> Generator[SharedMemoryCacheBackend, None, None]:
        from redis import Redis

        url = os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")
        cache = SharedMemoryCacheBackend(Redis.from_url(url), namespace="kvcache-test", owns_client=True)
        cache.clear()
        yield cache
        cache.clear()
        cache.close()

    def test_set_get_delete(self, cache: SharedMemoryCacheBackend) -> None:
        assert cache.set("key1", {"nested": {"list": [1, 2, 3]}}, ttl=60) is True
        assert cache.get("key1") == {"nested": {"list": [1, 2, 3]}}
        assert cache.has("key1") is True
        assert cache.delete("key1") is True
        assert cache.get("key1", "D") == "D"

    def test_multi(self, cache: SharedMemoryCacheBackend) -> None:
        data = {f"k{i}": i for i in range(30)}
        assert cache.set_multiple(data, ttl=100) is True
        assert cache.get_multiple(list(data)) == data
