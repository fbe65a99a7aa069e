"""Redis client factory — used for entity caching, proxied reads and PIN counters.

The client is built once by the composition root (src/main.py) and
injected into RedisKeyValueCache. There is no module-level pool.
"""

import redis.asyncio as aioredis

from config.settings import settings


def create_redis(url: str | None = None) -> aioredis.Redis:
    """Build a Redis client with short socket timeouts.

    A cache that hangs must never stall a request, so connect and read
    timeouts are kept well below a typical request budget.
    """
    return aioredis.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.CACHE_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.CACHE_SOCKET_TIMEOUT_SECONDS,
    )


async def close_redis(client: aioredis.Redis) -> None:
    """Close the Redis connection pool."""
    await client.aclose()
