"""Composition root: build the cache layer once at process start.

Usage from a host application:

    async with cache_layer() as layer:
        async with layer.session_factory() as db:
            decision = await layer.pin_lockout.validate_pin(db, user_id, pin)

One KeyValueCache instance is constructed here and shared by reference with
every repository, the PIN lockout and the InvalidationRouter. Nothing is
re-initialised afterwards.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis.asyncio as aioredis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from config.settings import settings
from src.pm_cache.application.namespaced import NamespacedCache
from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_cache.infrastructure.redis_cache import RedisKeyValueCache
from src.pm_common.database import create_engine, create_session_factory
from src.pm_common.redis_client import close_redis, create_redis
from src.pm_events.application.bus import InProcessEventBus
from src.pm_events.application.invalidation import InvalidationRouter
from src.pm_events.application.rules import BLOCKCHAIN_NAMESPACE, register_default_rules
from src.pm_gateway.auth.pin_lockout import PinLockout
from src.pm_gateway.user.models import User
from src.pm_gateway.user.repository import build_user_repository
from src.pm_gateway.user.service import UserService
from src.pm_store.application.service import CacheAsideRepository

logger = logging.getLogger("pm.app")


@dataclass
class CacheLayer:
    cache: KeyValueCacheProtocol
    session_factory: async_sessionmaker[AsyncSession]
    users: CacheAsideRepository[User]
    pin_lockout: PinLockout
    bus: InProcessEventBus
    router: InvalidationRouter
    user_service: UserService
    chain_reads: NamespacedCache


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_cache_layer(
    cache: KeyValueCacheProtocol,
    session_factory: async_sessionmaker[AsyncSession],
) -> CacheLayer:
    users = build_user_repository(cache)
    pin_lockout = PinLockout(users, cache)
    bus = InProcessEventBus()
    router = register_default_rules(InvalidationRouter(cache))
    router.attach(bus)
    return CacheLayer(
        cache=cache,
        session_factory=session_factory,
        users=users,
        pin_lockout=pin_lockout,
        bus=bus,
        router=router,
        user_service=UserService(users, pin_lockout, bus),
        chain_reads=NamespacedCache(
            cache, BLOCKCHAIN_NAMESPACE, settings.EXTERNAL_CACHE_TTL_SECONDS
        ),
    )


@asynccontextmanager
async def cache_layer(
    engine: AsyncEngine | None = None,
    redis: aioredis.Redis | None = None,
) -> AsyncGenerator[CacheLayer, None]:
    """Startup: verify DB, ping Redis. Shutdown: drain events, dispose."""
    configure_logging()
    engine = engine or create_engine()
    redis = redis or create_redis()

    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    cache = RedisKeyValueCache(redis)
    if not await cache.ping():
        logger.warning("Redis unreachable at startup; running with cache misses only")

    layer = build_cache_layer(cache, create_session_factory(engine))
    try:
        yield layer
    finally:
        # Shutdown
        await layer.bus.drain()
        await engine.dispose()
        await close_redis(redis)
