"""InMemoryKeyValueCache — process-local KeyValueCacheProtocol for dev and tests.

Entries expire lazily against a monotonic clock. Everything runs on the event
loop thread, so a single method call is atomic with respect to other tasks.
"""

import logging
import time
from collections.abc import Callable

logger = logging.getLogger("pm.cache")


class InMemoryKeyValueCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def keys(self) -> list[str]:
        """Live keys, for inspection."""
        return [k for k in list(self._entries) if self._live(k) is not None]

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def delete_by_prefix(self, prefix: str) -> int:
        matches = [k for k in self.keys() if k.startswith(prefix)]
        for key in matches:
            del self._entries[key]
        return len(matches)

    async def incr(self, key: str, ttl_seconds: int) -> int | None:
        current = self._live(key)
        if current is None:
            self._entries[key] = ("1", self._clock() + ttl_seconds)
            return 1
        try:
            count = int(current) + 1
        except ValueError:
            logger.warning("cache incr failed key=%s: value is not an integer", key)
            return None
        # Increment keeps the original expiry, like Redis INCR.
        self._entries[key] = (str(count), self._entries[key][1])
        return count

    async def ping(self) -> bool:
        return True
