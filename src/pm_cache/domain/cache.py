"""KeyValueCache Protocol — the leaf store every cached component sits on.

Values are always strings. ``get`` returning ``None`` therefore means "absent"
and can never be mistaken for a stored null (that would be the string "null").

Implementations are best-effort: they never raise for a missing key, and they
log and swallow backend failures so that a cache outage only costs latency.
"""

from typing import Protocol


class KeyValueCacheProtocol(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def delete_by_prefix(self, prefix: str) -> int: ...

    async def incr(self, key: str, ttl_seconds: int) -> int | None: ...

    async def ping(self) -> bool: ...
