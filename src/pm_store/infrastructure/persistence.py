"""SqlAlchemyEntityStore — concrete EntityStoreProtocol over SQLAlchemy Core.

Statements are built against an ORM model's ``__table__`` and rows are mapped
into the entity dataclass by column name, so the dataclass fields and the
table columns must share names.

Soft-deleted rows (``deleted_at IS NOT NULL``) are hidden from reads unless
``with_deleted`` is passed.
"""

import dataclasses
from collections.abc import Collection, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import (
    ColumnElement,
    Table,
    and_,
    delete,
    func,
    insert,
    select,
    true,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import ConfigurationError, InvalidQueryError
from src.pm_store.domain.query import SortField

T = TypeVar("T")


class SqlAlchemyEntityStore(Generic[T]):
    def __init__(
        self,
        table: Table,
        entity_type: type[T],
        soft_delete_column: str | None = "deleted_at",
    ) -> None:
        if not dataclasses.is_dataclass(entity_type):
            raise ConfigurationError(f"{entity_type!r} must be a dataclass")
        if soft_delete_column is not None and soft_delete_column not in table.c:
            raise ConfigurationError(
                f"table {table.name} has no soft-delete column {soft_delete_column!r}"
            )
        fields = [f.name for f in dataclasses.fields(entity_type)]  # type: ignore[arg-type]
        missing = [name for name in fields if name not in table.c]
        if missing:
            raise ConfigurationError(f"table {table.name} has no columns {missing}")

        self._table = table
        self._entity_type = entity_type
        self._fields = fields
        self._soft_delete_column = soft_delete_column

    # ------------------------------------------------------------------
    # Row mapping / clause building
    # ------------------------------------------------------------------

    def _row_to_entity(self, row: object) -> T:
        mapping = row._mapping  # type: ignore[attr-defined]
        return self._entity_type(**{name: mapping[name] for name in self._fields})

    def _column(self, name: str) -> Any:
        if name not in self._table.c:
            raise InvalidQueryError(f"unknown field {name!r} on {self._table.name}")
        return self._table.c[name]

    def _where(
        self,
        filters: Mapping[str, Any],
        with_deleted: bool = True,
        casefold: Collection[str] = (),
    ) -> ColumnElement[bool]:
        clauses: list[ColumnElement[bool]] = []
        for name, value in filters.items():
            column = self._column(name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            elif name in casefold:
                clauses.append(func.lower(column) == str(value).lower())
            else:
                clauses.append(column == value)
        if not with_deleted and self._soft_delete_column is not None:
            clauses.append(self._table.c[self._soft_delete_column].is_(None))
        return and_(true(), *clauses)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_one(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
        casefold: Collection[str] = (),
    ) -> T | None:
        stmt = (
            select(self._table)
            .where(self._where(filters, with_deleted, casefold))
            .limit(1)
        )
        result = await db.execute(stmt)
        row = result.fetchone()
        return self._row_to_entity(row) if row else None

    async def find(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        order_by: Sequence[SortField] = (),
        limit: int | None = None,
        offset: int = 0,
        with_deleted: bool = False,
    ) -> list[T]:
        stmt = select(self._table).where(self._where(filters, with_deleted))
        for sort in order_by:
            column = self._column(sort.field)
            stmt = stmt.order_by(column.desc() if sort.descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await db.execute(stmt)
        return [self._row_to_entity(row) for row in result.fetchall()]

    async def count(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(self._table)
            .where(self._where(filters, with_deleted))
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, db: AsyncSession, values: Mapping[str, Any]) -> T:
        for name in values:
            self._column(name)
        stmt = insert(self._table).values(**values).returning(self._table)
        result = await db.execute(stmt)
        return self._row_to_entity(result.fetchone())

    async def update(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> int:
        for name in changes:
            self._column(name)
        stmt = update(self._table).where(self._where(filters)).values(**changes)
        result = await db.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    async def increment(
        self,
        db: AsyncSession,
        filters: Mapping[str, Any],
        field: str,
        amount: int,
    ) -> int:
        """``SET field = field + amount`` evaluated by the database."""
        column = self._column(field)
        stmt = (
            update(self._table)
            .where(self._where(filters))
            .values({column.name: column + amount})
        )
        result = await db.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    async def delete(self, db: AsyncSession, filters: Mapping[str, Any]) -> int:
        stmt = delete(self._table).where(self._where(filters))
        result = await db.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]

    async def soft_delete(self, db: AsyncSession, filters: Mapping[str, Any]) -> int:
        if self._soft_delete_column is None:
            raise ConfigurationError(f"table {self._table.name} has no soft delete")
        stmt = (
            update(self._table)
            .where(self._where(filters, with_deleted=False))
            .values({self._soft_delete_column: datetime.now(UTC)})
        )
        result = await db.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined]
