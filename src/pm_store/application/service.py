"""CacheAsideRepository — read-through entity cache in front of an entity store.

Reads: cache first, then the store on a miss, then populate every key.
Writes: store first (committed), then purge every key the entity occupied
before the write and every key it occupies after it. Nothing is repopulated on
write; the next read does that.

Store errors propagate untouched (no retry). Cache errors never reach the
caller, they are swallowed by the KeyValueCache implementation.

Transaction ownership: each mutating method commits its own unit of work
(rollback + re-raise on failure) so that invalidation only ever follows a
durable write.
"""

import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_cache.application.entity_cache import MultiKeyEntityCache
from src.pm_cache.application.namespaced import NamespacedCache
from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_cache.domain.descriptor import EntityDescriptor
from src.pm_common.errors import InvalidQueryError
from src.pm_store.domain.query import parse_sort
from src.pm_store.domain.repository import EntityStoreProtocol, Page

logger = logging.getLogger("pm.store")

T = TypeVar("T")

PK = str | int


class CacheAsideRepository(Generic[T]):
    def __init__(
        self,
        namespace: str,
        descriptor: EntityDescriptor[T],
        store: EntityStoreProtocol[T],
        cache: KeyValueCacheProtocol,
    ) -> None:
        self.namespace = namespace
        self.descriptor = descriptor
        self._store = store
        self._entities: MultiKeyEntityCache[T] = MultiKeyEntityCache(
            NamespacedCache(cache, namespace, descriptor.ttl_seconds), descriptor
        )

    @property
    def entity_cache(self) -> MultiKeyEntityCache[T]:
        return self._entities

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_key(
        self, db: AsyncSession, key: str, with_deleted: bool = False
    ) -> T | None:
        """Resolve ``"<primary>"`` or ``"<sub field>:<value>"`` to an entity.

        Soft-deleted rows are never written to the cache, so a
        ``with_deleted`` lookup cannot leak them into later default lookups.
        """
        cached = await self._entities.get(key)
        if cached is not None and (with_deleted or not self._entities.is_deleted(cached)):
            return cached

        entity = await self._load(db, key, with_deleted)
        if entity is not None and not self._entities.is_deleted(entity):
            await self._entities.put(entity)
        return entity

    async def get_by_id(self, db: AsyncSession, entity_id: PK) -> T | None:
        return await self.get_by_key(db, str(entity_id))

    async def _load(self, db: AsyncSession, key: str, with_deleted: bool) -> T | None:
        field_name, value = self._entities.resolve(key)
        logger.debug("cache miss %s:%s, loading %s=%s", self.namespace, key, field_name, value)
        return await self._store.find_one(
            db,
            {field_name: value},
            with_deleted=with_deleted,
            casefold=self.descriptor.casefold_keys,
        )

    async def _snapshot(self, db: AsyncSession, entity_id: PK) -> T | None:
        """Pre-mutation state: the cached copy if any, else the stored row."""
        key = str(entity_id)
        cached = await self._entities.get(key)
        if cached is not None:
            return cached
        return await self._load(db, key, with_deleted=True)

    async def find_one(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
    ) -> T | None:
        """Uncached single-row lookup on arbitrary columns."""
        return await self._store.find_one(db, filters, with_deleted=with_deleted)

    async def count(self, db: AsyncSession, filters: Mapping[str, Any]) -> int:
        return await self._store.count(db, filters)

    async def paginate(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any] | None = None,
        sort: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Page[T]:
        """List straight from the store; lists are never cached."""
        filters = filters or {}
        order_by = parse_sort(sort)
        self._check_fields([*filters, *(s.field for s in order_by)])

        total_count = await self._store.count(db, filters)
        if total_count == 0:
            return Page(items=[], total_count=0)

        items = await self._store.find(
            db,
            filters,
            order_by=order_by,
            limit=limit,
            offset=offset,
        )
        return Page(items=items, total_count=total_count)

    def _check_fields(self, names: list[str]) -> None:
        unknown = sorted(set(names) - self.descriptor.field_names())
        if unknown:
            raise InvalidQueryError(f"unknown fields {unknown} on {self.namespace}")

    def _pk_filter(self, entity_id: PK) -> dict[str, Any]:
        return {self.descriptor.primary_key: self._entities.primary_value(entity_id)}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, db: AsyncSession, values: Mapping[str, Any]) -> T:
        # A reclaimed unique value (e.g. a soft-deleted user's wallet) may
        # still have a ghost entry under its key.
        await self._entities.remove(values)
        try:
            entity = await self._store.insert(db, values)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return entity

    async def update_by_id(
        self, db: AsyncSession, entity_id: PK, changes: Mapping[str, Any]
    ) -> None:
        if not changes:
            return
        previous = await self._snapshot(db, entity_id)
        try:
            await self._store.update(
                db, self._pk_filter(entity_id), changes
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._purge(db, entity_id, previous)

    async def increment_by_id(
        self, db: AsyncSession, entity_id: PK, field_name: str, amount: int
    ) -> None:
        """Atomic ``field = field + amount`` in the store, then purge as on update."""
        self._check_fields([field_name])
        previous = await self._snapshot(db, entity_id)
        try:
            await self._store.increment(
                db, self._pk_filter(entity_id), field_name, amount
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._purge(db, entity_id, previous)

    async def _purge(self, db: AsyncSession, entity_id: PK, previous: T | None) -> None:
        # Old sub keys can only be found through the old values.
        if previous is not None:
            await self._entities.remove(previous)
        fresh = await self._load(db, str(entity_id), with_deleted=True)
        if fresh is not None:
            await self._entities.remove(fresh)

    async def bulk_update(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> int:
        """Store-only update. Per-entity cache entries are NOT purged;
        affected entities stay stale until their TTL runs out."""
        try:
            affected = await self._store.update(db, filters, changes)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.debug(
            "bulk update on %s touched %d rows without cache invalidation",
            self.namespace,
            affected,
        )
        return affected

    async def delete_by_id(self, db: AsyncSession, entity_id: PK) -> bool:
        previous = await self._snapshot(db, entity_id)
        try:
            affected = await self._store.delete(
                db, self._pk_filter(entity_id)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if previous is not None:
            await self._entities.remove(previous)
        return affected > 0

    async def soft_delete_by_id(self, db: AsyncSession, entity_id: PK) -> bool:
        previous = await self._snapshot(db, entity_id)
        try:
            affected = await self._store.soft_delete(
                db, self._pk_filter(entity_id)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if previous is not None:
            await self._entities.remove(previous)
        return affected > 0

    async def clear_cache_for_id(self, db: AsyncSession, entity_id: PK) -> None:
        snapshot = await self._snapshot(db, entity_id)
        if snapshot is not None:
            await self._entities.remove(snapshot)
