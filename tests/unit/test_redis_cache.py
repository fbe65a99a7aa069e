"""Unit tests for RedisKeyValueCache using a mocked redis.asyncio client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.pm_cache.infrastructure.redis_cache import RedisKeyValueCache, escape_glob


def _scan(keys: list[str]):
    async def _iter(*args, **kwargs):
        for key in keys:
            yield key

    return MagicMock(side_effect=_iter)


def _pipeline(client: AsyncMock, replies: list) -> MagicMock:
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    pipe.execute = AsyncMock(return_value=replies)
    client.pipeline = MagicMock(return_value=pipe)
    return pipe


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def cache(client: AsyncMock) -> RedisKeyValueCache:
    return RedisKeyValueCache(client, op_timeout=0.05)


class TestHappyPath:
    async def test_get_returns_value(self, cache: RedisKeyValueCache, client: AsyncMock) -> None:
        client.get.return_value = '{"id": "u1"}'
        assert await cache.get("users:u1") == '{"id": "u1"}'
        client.get.assert_awaited_once_with("users:u1")

    async def test_set_uses_expiry(self, cache: RedisKeyValueCache, client: AsyncMock) -> None:
        await cache.set("users:u1", "v", 60)
        client.set.assert_awaited_once_with("users:u1", "v", ex=60)

    async def test_delete_without_keys_skips_round_trip(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        await cache.delete()
        client.delete.assert_not_awaited()

    async def test_incr_and_expire_share_one_transaction(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        pipe = _pipeline(client, [1, True])

        assert await cache.incr("pinFailureCount:u1", 900) == 1

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("pinFailureCount:u1")
        pipe.expire.assert_called_once_with("pinFailureCount:u1", 900, nx=True)
        client.incr.assert_not_called()
        client.expire.assert_not_called()

    async def test_incr_returns_running_count(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        _pipeline(client, [3, False])
        assert await cache.incr("pinFailureCount:u1", 900) == 3

    async def test_delete_by_prefix_scans_then_deletes(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        client.scan_iter = _scan(["blockchain:getRecentTrades:0:10", "blockchain:getRecentTrades:10:10"])
        client.delete.return_value = 2

        removed = await cache.delete_by_prefix("blockchain:getRecentTrades")

        assert removed == 2
        assert client.scan_iter.call_args.kwargs["match"] == "blockchain:getRecentTrades*"
        client.delete.assert_awaited_once_with(
            "blockchain:getRecentTrades:0:10", "blockchain:getRecentTrades:10:10"
        )

    async def test_delete_by_prefix_with_no_matches(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        client.scan_iter = _scan([])
        assert await cache.delete_by_prefix("blockchain:getRecentTrades") == 0
        client.delete.assert_not_awaited()


class TestFailuresAreSwallowed:
    async def test_get_on_connection_error_is_a_miss(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        client.get.side_effect = RedisConnectionError("down")
        assert await cache.get("users:u1") is None

    async def test_get_on_timeout_is_a_miss(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        async def _hang(*args, **kwargs):
            await asyncio.sleep(1)

        client.get.side_effect = _hang
        assert await cache.get("users:u1") is None

    async def test_set_and_delete_do_not_raise(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        client.set.side_effect = RedisConnectionError("down")
        client.delete.side_effect = RedisConnectionError("down")
        await cache.set("k", "v", 60)
        await cache.delete("k")

    async def test_incr_returns_none_when_transaction_fails(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        pipe = _pipeline(client, [])
        pipe.execute.side_effect = RedisConnectionError("down")

        assert await cache.incr("k", 60) is None
        # Nothing is sent outside the MULTI/EXEC, so no counter is left without a TTL.
        client.incr.assert_not_called()
        client.expire.assert_not_called()

    async def test_delete_by_prefix_returns_zero(
        self, cache: RedisKeyValueCache, client: AsyncMock
    ) -> None:
        def _boom(*args, **kwargs):
            raise RedisConnectionError("down")

        client.scan_iter = MagicMock(side_effect=_boom)
        assert await cache.delete_by_prefix("blockchain:") == 0

    async def test_ping_false_when_down(self, cache: RedisKeyValueCache, client: AsyncMock) -> None:
        client.ping.side_effect = RedisConnectionError("down")
        assert await cache.ping() is False


def test_escape_glob_makes_prefix_literal():
    assert escape_glob("a*b?[c]") == "a\\*b\\?\\[c\\]"
    assert escape_glob("users:wallet_address:0xabc") == "users:wallet_address:0xabc"
