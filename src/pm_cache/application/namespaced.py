"""NamespacedCache — a KeyValueCache view scoped to one owner's namespace.

Every key is stored as ``"<namespace>:<key>"``. The namespace is an explicit
string chosen by the owner at construction; two owners never share one.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import settings
from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_common.errors import ConfigurationError

logger = logging.getLogger("pm.cache")


def _is_not_none(value: Any) -> bool:
    return value is not None


class NamespacedCache:
    def __init__(
        self,
        cache: KeyValueCacheProtocol,
        namespace: str,
        default_ttl_seconds: int | None = None,
    ) -> None:
        if not namespace or ":" in namespace:
            raise ConfigurationError(
                f"namespace must be a non-empty string without ':' (got {namespace!r})"
            )
        self._cache = cache
        self.namespace = namespace
        self.default_ttl_seconds = (
            default_ttl_seconds
            if default_ttl_seconds is not None
            else settings.CACHE_DEFAULT_TTL_SECONDS
        )

    def full_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._cache.get(self.full_key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        await self._cache.set(self.full_key(key), value, ttl)

    async def delete(self, *keys: str) -> None:
        await self._cache.delete(*(self.full_key(k) for k in keys))

    async def delete_by_prefix(self, prefix: str) -> int:
        return await self._cache.delete_by_prefix(self.full_key(prefix))

    async def incr(self, key: str, ttl_seconds: int | None = None) -> int | None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        return await self._cache.incr(self.full_key(key), ttl)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl_seconds: int | None = None,
        should_cache: Callable[[Any], bool] = _is_not_none,
    ) -> Any:
        """Cache-aside read for JSON-able values.

        Loader results are only written back when ``should_cache`` accepts
        them, so failed upstream responses are never pinned in the cache.
        """
        raw = await self.get(key)
        if raw is not None:
            try:
                value = json.loads(raw)
            except ValueError:
                logger.warning("undecodable cache payload %s, reloading", self.full_key(key))
            else:
                logger.debug("Loaded %s from cache", self.full_key(key))
                return value

        value = await loader()
        if should_cache(value):
            await self.set(key, json.dumps(value, default=str), ttl_seconds)
        return value
