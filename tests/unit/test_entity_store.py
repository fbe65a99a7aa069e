# tests/unit/test_entity_store.py
"""Unit tests for SqlAlchemyEntityStore using MagicMock AsyncSession."""
from dataclasses import dataclass
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Column, MetaData, String, Table

from src.pm_common.errors import ConfigurationError, InvalidQueryError
from src.pm_gateway.user.db_models import UserModel
from src.pm_gateway.user.models import User
from src.pm_store.domain.query import SortField
from src.pm_store.infrastructure.persistence import SqlAlchemyEntityStore


def _make_user_row(**kwargs):
    """Build a mock DB row exposing ``_mapping`` like a SQLAlchemy Row."""
    now = datetime.now(UTC)
    mapping = {
        "id": "u1",
        "username": "alice",
        "email": "alice@example.com",
        "wallet_address": "0xabc",
        "twitter_screen_name": None,
        "pin_secret": None,
        "status": "ACTIVE",
        "shared": 0,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    mapping.update(kwargs)
    row = MagicMock()
    row._mapping = mapping
    return row


def _sql(db) -> str:
    return str(db.execute.call_args.args[0])


def _params(db) -> dict:
    return db.execute.call_args.args[0].compile().params


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def store() -> SqlAlchemyEntityStore[User]:
    return SqlAlchemyEntityStore(UserModel.__table__, User)


def _returns(db, **result_attrs):
    result_mock = MagicMock()
    for name, value in result_attrs.items():
        setattr(result_mock, name, value)
    db.execute = AsyncMock(return_value=result_mock)
    return result_mock


class TestConstruction:
    def test_entity_must_be_dataclass(self):
        with pytest.raises(ConfigurationError):
            SqlAlchemyEntityStore(UserModel.__table__, dict)

    def test_soft_delete_column_must_exist(self):
        table = Table("tags", MetaData(), Column("id", String, primary_key=True))

        @dataclass
        class Tag:
            id: str

        with pytest.raises(ConfigurationError):
            SqlAlchemyEntityStore(table, Tag)
        assert SqlAlchemyEntityStore(table, Tag, soft_delete_column=None) is not None

    def test_every_field_needs_a_column(self):
        @dataclass
        class Wider(User):
            nickname: str | None = None

        with pytest.raises(ConfigurationError):
            SqlAlchemyEntityStore(UserModel.__table__, Wider)


class TestFindOne:
    async def test_returns_entity_when_found(self, db, store):
        result = _returns(db)
        result.fetchone.return_value = _make_user_row(id="u9", username="bob")

        user = await store.find_one(db, {"id": "u9"})

        assert isinstance(user, User)
        assert (user.id, user.username) == ("u9", "bob")
        sql = _sql(db)
        assert "users.deleted_at IS NULL" in sql
        assert "LIMIT" in sql

    async def test_returns_none_when_not_found(self, db, store):
        _returns(db).fetchone.return_value = None
        assert await store.find_one(db, {"id": "missing"}) is None

    async def test_with_deleted_drops_soft_delete_filter(self, db, store):
        _returns(db).fetchone.return_value = None
        await store.find_one(db, {"id": "u1"}, with_deleted=True)
        assert "deleted_at IS NULL" not in _sql(db)

    async def test_casefold_field_compares_lower_cased(self, db, store):
        _returns(db).fetchone.return_value = None
        await store.find_one(db, {"wallet_address": "0xABC"}, casefold={"wallet_address"})
        assert "lower(users.wallet_address)" in _sql(db)
        assert "0xabc" in _params(db).values()

    async def test_unknown_field_is_rejected_before_io(self, db, store):
        db.execute = AsyncMock()
        with pytest.raises(InvalidQueryError):
            await store.find_one(db, {"nickname": "bob"})
        db.execute.assert_not_awaited()


class TestFind:
    async def test_returns_list_in_requested_order(self, db, store):
        _returns(db).fetchall.return_value = [_make_user_row(id=f"u{i}") for i in range(3)]

        users = await store.find(
            db,
            {"status": ["ACTIVE", "SUSPENDED"]},
            order_by=[SortField("created_at", descending=True)],
            limit=3,
            offset=6,
        )

        assert [u.id for u in users] == ["u0", "u1", "u2"]
        sql = _sql(db)
        assert "users.status IN" in sql
        assert "ORDER BY users.created_at DESC" in sql
        assert "OFFSET" in sql

    async def test_unknown_sort_field(self, db, store):
        db.execute = AsyncMock()
        with pytest.raises(InvalidQueryError):
            await store.find(db, {}, order_by=[SortField("karma")])


class TestCount:
    async def test_count(self, db, store):
        _returns(db).scalar_one.return_value = 3
        assert await store.count(db, {"status": "ACTIVE"}) == 3
        assert "count(*)" in _sql(db)


class TestWrites:
    async def test_insert_returns_entity(self, db, store):
        _returns(db).fetchone.return_value = _make_user_row(id="new")
        user = await store.insert(db, {"id": "new", "username": "alice"})
        assert user.id == "new"
        assert "RETURNING" in _sql(db)

    async def test_update_returns_rowcount(self, db, store):
        _returns(db, rowcount=1)
        assert await store.update(db, {"id": "u1"}, {"status": "SUSPENDED"}) == 1
        assert _sql(db).startswith("UPDATE users SET")

    async def test_update_rejects_unknown_column(self, db, store):
        db.execute = AsyncMock()
        with pytest.raises(InvalidQueryError):
            await store.update(db, {"id": "u1"}, {"karma": 1})

    async def test_increment_is_evaluated_by_the_database(self, db, store):
        _returns(db, rowcount=1)
        assert await store.increment(db, {"id": "u1"}, "shared", 2) == 1
        sql = _sql(db)
        assert "SET shared=(users.shared +" in sql
        assert "users.id =" in sql
        assert 2 in _params(db).values()

    async def test_increment_rejects_unknown_column(self, db, store):
        db.execute = AsyncMock()
        with pytest.raises(InvalidQueryError):
            await store.increment(db, {"id": "u1"}, "karma", 1)
        db.execute.assert_not_called()

    async def test_delete_returns_rowcount(self, db, store):
        _returns(db, rowcount=0)
        assert await store.delete(db, {"id": "u1"}) == 0
        assert _sql(db).startswith("DELETE FROM users")

    async def test_soft_delete_only_touches_live_rows(self, db, store):
        _returns(db, rowcount=1)
        assert await store.soft_delete(db, {"id": "u1"}) == 1
        sql = _sql(db)
        assert "SET deleted_at" in sql
        assert "users.deleted_at IS NULL" in sql

    async def test_none_filter_is_null_check(self, db, store):
        _returns(db, rowcount=2)
        await store.update(db, {"email": None}, {"shared": 0})
        assert "users.email IS NULL" in _sql(db)
