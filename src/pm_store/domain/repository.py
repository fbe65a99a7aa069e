"""Entity store Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the SQLAlchemy implementation.

Transaction ownership: the CALLER (CacheAsideRepository) commits or rolls
back. Store methods only execute statements on the session they are given.
"""

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_store.domain.query import SortField

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    total_count: int = 0


class EntityStoreProtocol(Protocol[T_co]):
    async def find_one(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
        casefold: Collection[str] = (),
    ) -> T_co | None: ...

    async def find(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        order_by: Sequence[SortField] = (),
        limit: int | None = None,
        offset: int = 0,
        with_deleted: bool = False,
    ) -> list[T_co]: ...

    async def count(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
    ) -> int: ...

    async def insert(self, db: AsyncSession, values: Mapping[str, Any]) -> T_co: ...

    async def update(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> int: ...

    async def increment(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        field: str,
        amount: int,
    ) -> int: ...

    async def delete(self, db: AsyncSession, filters: Mapping[str, Any]) -> int: ...

    async def soft_delete(self, db: AsyncSession, filters: Mapping[str, Any]) -> int: ...
