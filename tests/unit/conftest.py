"""Unit-test fixtures: an in-memory entity store and user factories."""

import uuid
from collections.abc import Collection, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from src.pm_cache.infrastructure.memory_cache import InMemoryKeyValueCache
from src.pm_gateway.user.models import User
from src.pm_gateway.user.repository import build_user_repository
from src.pm_store.application.service import CacheAsideRepository
from src.pm_store.domain.query import SortField


def make_user_row(**overrides: Any) -> dict[str, Any]:
    now = datetime.now(UTC)
    row: dict[str, Any] = {
        "id": "u1",
        "username": "alice",
        "email": "alice@example.com",
        "wallet_address": "0xABC",
        "twitter_screen_name": "alice_x",
        "pin_secret": None,
        "status": "ACTIVE",
        "shared": 0,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    row.update(overrides)
    return row


class FakeUserStore:
    """In-memory EntityStoreProtocol[User] with call counters and an outage switch."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.find_one_calls = 0
        self.down = False

    def add(self, **overrides: Any) -> User:
        row = make_user_row(**overrides)
        self.rows[row["id"]] = row
        return User(**row)

    def _check(self) -> None:
        if self.down:
            raise OperationalError("SELECT", {}, Exception("connection refused"))

    def _matches(
        self,
        row: Mapping[str, Any],
        filters: Mapping[str, Any],
        with_deleted: bool,
        casefold: Collection[str] = (),
    ) -> bool:
        if not with_deleted and row["deleted_at"] is not None:
            return False
        for name, value in filters.items():
            actual = row[name]
            if isinstance(value, (list, tuple, set)):
                if actual not in value:
                    return False
            elif name in casefold and actual is not None:
                if str(actual).lower() != str(value).lower():
                    return False
            elif actual != value:
                return False
        return True

    async def find_one(
        self,
        db: Any,
        filters: Mapping[str, Any],
        with_deleted: bool = False,
        casefold: Collection[str] = (),
    ) -> User | None:
        self._check()
        self.find_one_calls += 1
        for row in self.rows.values():
            if self._matches(row, filters, with_deleted, casefold):
                return User(**row)
        return None

    async def find(
        self,
        db: Any,
        filters: Mapping[str, Any],
        order_by: Sequence[SortField] = (),
        limit: int | None = None,
        offset: int = 0,
        with_deleted: bool = False,
    ) -> list[User]:
        self._check()
        rows = [r for r in self.rows.values() if self._matches(r, filters, with_deleted)]
        for sort in reversed(list(order_by)):
            rows.sort(key=lambda r: r[sort.field], reverse=sort.descending)
        end = None if limit is None else offset + limit
        return [User(**r) for r in rows[offset:end]]

    async def count(
        self, db: Any, filters: Mapping[str, Any], with_deleted: bool = False
    ) -> int:
        self._check()
        return sum(1 for r in self.rows.values() if self._matches(r, filters, with_deleted))

    async def insert(self, db: Any, values: Mapping[str, Any]) -> User:
        self._check()
        row = make_user_row(id=str(uuid.uuid4()))
        row.update(values)
        self.rows[row["id"]] = row
        return User(**row)

    async def update(
        self, db: Any, filters: Mapping[str, Any], changes: Mapping[str, Any]
    ) -> int:
        self._check()
        affected = 0
        for row in self.rows.values():
            if self._matches(row, filters, with_deleted=True):
                row.update(changes)
                affected += 1
        return affected

    async def increment(
        self, db: Any, filters: Mapping[str, Any], field: str, amount: int
    ) -> int:
        self._check()
        affected = 0
        for row in self.rows.values():
            if self._matches(row, filters, with_deleted=True):
                row[field] += amount
                affected += 1
        return affected

    async def delete(self, db: Any, filters: Mapping[str, Any]) -> int:
        self._check()
        doomed = [k for k, r in self.rows.items() if self._matches(r, filters, True)]
        for key in doomed:
            del self.rows[key]
        return len(doomed)

    async def soft_delete(self, db: Any, filters: Mapping[str, Any]) -> int:
        return await self.update(
            db, {**filters, "deleted_at": None}, {"deleted_at": datetime.now(UTC)}
        )


@pytest.fixture
def store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def users(
    memory_cache: InMemoryKeyValueCache, store: FakeUserStore
) -> CacheAsideRepository[User]:
    return build_user_repository(memory_cache, store=store)
