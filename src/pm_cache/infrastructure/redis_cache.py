"""RedisKeyValueCache — concrete KeyValueCacheProtocol over redis.asyncio.

Every call is wrapped in a short, independent timeout. Any RedisError or
timeout is logged and swallowed: reads degrade to a miss, writes and deletes
become no-ops. The backing store stays authoritative, and TTL bounds whatever
staleness a lost delete leaves behind.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger("pm.cache")

T = TypeVar("T")

_SCAN_BATCH = 500
_GLOB_SPECIALS = "\\*?[]"


def escape_glob(text: str) -> str:
    """Escape Redis MATCH glob metacharacters so a prefix matches literally."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIALS else ch for ch in text)


class RedisKeyValueCache:
    def __init__(
        self,
        client: aioredis.Redis,
        op_timeout: float | None = None,
    ) -> None:
        self._client = client
        self._op_timeout = (
            settings.CACHE_OP_TIMEOUT_SECONDS if op_timeout is None else op_timeout
        )

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._op_timeout)

    async def get(self, key: str) -> str | None:
        try:
            return await self._bounded(self._client.get(key))
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache get failed key=%s: %r, treating as miss", key, exc)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._bounded(self._client.set(key, value, ex=ttl_seconds))
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache set failed key=%s: %r", key, exc)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._bounded(self._client.delete(*keys))
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache delete failed keys=%s: %r", keys, exc)

    async def delete_by_prefix(self, prefix: str) -> int:
        """SCAN for ``prefix*`` then delete each batch.

        Cost is proportional to the whole keyspace, so callers keep this to
        a single low-cardinality namespace.
        """
        pattern = f"{escape_glob(prefix)}*"
        removed = 0
        batch: list[Any] = []
        try:
            async for key in self._client.scan_iter(match=pattern, count=_SCAN_BATCH):
                batch.append(key)
                if len(batch) >= _SCAN_BATCH:
                    removed += await self._bounded(self._client.delete(*batch))
                    batch = []
            if batch:
                removed += await self._bounded(self._client.delete(*batch))
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache delete_by_prefix failed prefix=%s: %r", prefix, exc)
        return removed

    async def incr(self, key: str, ttl_seconds: int) -> int | None:
        """Atomic increment-and-get; the TTL is armed when the key is created.

        INCR and ``EXPIRE ... NX`` go out in one MULTI/EXEC, so a counter can
        never exist without an expiry, and NX keeps the window fixed from the
        first increment. Needs Redis 7+.
        """
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds, nx=True)
                count, _ = await self._bounded(pipe.execute())
            return int(count)
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache incr failed key=%s: %r", key, exc)
            return None

    async def ping(self) -> bool:
        try:
            return bool(await self._bounded(self._client.ping()))
        except (RedisError, TimeoutError) as exc:
            logger.warning("cache ping failed: %r", exc)
            return False
