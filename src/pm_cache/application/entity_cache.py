"""MultiKeyEntityCache — one entity snapshot under a primary key plus sub keys.

Key payloads inside the owner's namespace:
  primary:    "<primary value>"
  secondary:  "<field>:<value>"

Writes and removals fan out over every key concurrently and are not
transactional. A partial write only costs extra misses later, because every
key independently reloads the same row from the store.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar, get_type_hints

from pydantic import TypeAdapter, ValidationError

from src.pm_cache.application.namespaced import NamespacedCache
from src.pm_cache.domain.descriptor import EntityDescriptor
from src.pm_common.errors import InvalidQueryError

logger = logging.getLogger("pm.cache")

T = TypeVar("T")


class MultiKeyEntityCache(Generic[T]):
    def __init__(self, cache: NamespacedCache, descriptor: EntityDescriptor[T]) -> None:
        self._cache = cache
        self.descriptor = descriptor
        self._adapter: TypeAdapter[T] = TypeAdapter(descriptor.entity_type)
        # Lookup keys are text; store filters need the field's own type (int ids).
        hints = get_type_hints(descriptor.entity_type)
        self._key_adapters: dict[str, TypeAdapter[Any]] = {
            name: TypeAdapter(hints[name])
            for name in (descriptor.primary_key, *descriptor.sub_keys)
        }

    # ------------------------------------------------------------------
    # Key derivation
    # ------------------------------------------------------------------

    def _as_mapping(self, data: T | Mapping[str, Any]) -> Mapping[str, Any]:
        if isinstance(data, Mapping):
            return data
        return {f.name: getattr(data, f.name) for f in dataclasses.fields(data)}  # type: ignore[arg-type]

    def _key_value(self, field_name: str, value: Any) -> str:
        text = str(value)
        if field_name in self.descriptor.casefold_keys:
            text = text.lower()
        return text

    def keys_for(self, data: T | Mapping[str, Any]) -> list[str]:
        """Every cache key the given snapshot (or insert values) occupies."""
        values = self._as_mapping(data)
        keys: list[str] = []
        primary = values.get(self.descriptor.primary_key)
        if primary not in (None, ""):
            keys.append(str(primary))
        for name in self.descriptor.sub_keys:
            value = values.get(name)
            if value in (None, ""):
                continue
            keys.append(f"{name}:{self._key_value(name, value)}")
        return keys

    def resolve(self, key: str) -> tuple[str, Any]:
        """Split a lookup key into (field, value) for the store query.

        The value is converted to the field's declared type, so ``"5"`` becomes
        ``5`` for an integer primary key.
        """
        field_name, sep, value = key.partition(":")
        if sep and field_name in self.descriptor.sub_keys:
            return field_name, self._typed(field_name, self._key_value(field_name, value))
        return self.descriptor.primary_key, self._typed(self.descriptor.primary_key, key)

    def _typed(self, field_name: str, text: str) -> Any:
        try:
            return self._key_adapters[field_name].validate_python(text)
        except ValidationError as exc:
            raise InvalidQueryError(
                f"{text!r} is not a valid {field_name} for {self.descriptor.entity_type.__name__}"
            ) from exc

    def primary_value(self, value: Any) -> Any:
        return self._typed(self.descriptor.primary_key, str(value))

    def normalize(self, key: str) -> str:
        field_name, value = self.resolve(key)
        if field_name == self.descriptor.primary_key:
            return str(value)
        return f"{field_name}:{value}"

    def is_deleted(self, entity: T) -> bool:
        field_name = self.descriptor.soft_delete_field
        return field_name is not None and getattr(entity, field_name) is not None

    # ------------------------------------------------------------------
    # Cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> T | None:
        raw = await self._cache.get(self.normalize(key))
        if raw is None:
            return None
        try:
            return self._adapter.validate_json(raw)
        except ValidationError:
            logger.warning(
                "discarding stale snapshot %s", self._cache.full_key(self.normalize(key))
            )
            return None

    async def put(self, entity: T) -> None:
        payload = self._adapter.dump_json(entity).decode("utf-8")
        ttl = self.descriptor.ttl_seconds
        await asyncio.gather(
            *(self._cache.set(key, payload, ttl) for key in self.keys_for(entity))
        )

    async def remove(self, data: T | Mapping[str, Any]) -> None:
        keys = self.keys_for(data)
        if keys:
            await self._cache.delete(*keys)
