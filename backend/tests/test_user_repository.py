"""
TaskBoard Backend - User Repository Tests
=========================================

What we test:
    ✅ lookups return immutable UserRecord values
    ✅ missing rows raise UserNotFoundError
    ✅ UNIQUE violations map to UserAlreadyExistsError
    ✅ other SQLAlchemy failures map to DatabaseError (not "not found")
    ✅ delete reports a missing row as UserNotFoundError
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from taskboard.exceptions import DatabaseError, UserAlreadyExistsError, UserNotFoundError
from taskboard.models.user import User
from taskboard.schemas.user import NewUser
from taskboard.services.user_repository import SqlAlchemyUserRepository

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_user(user_id=1, username="slava"):
    return User(
        id=user_id,
        username=username,
        name="Slava",
        email=f"{username}@taskboard.io",
        password="$2b$04$hash",
        avatar=None,
        created_at=NOW,
        updated_at=NOW,
    )


def result_with(row):
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    return result


class TestLookups:
    def setup_method(self):
        self.new_user = NewUser(username="slava", name="Slava", email="s@taskboard.io", password="h")

    @pytest.mark.asyncio
    async def test_get_by_username_found(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(make_user())
        repo = SqlAlchemyUserRepository(mock_db_session)

        record = await repo.get_by_username("slava")

        assert record.id == 1
        assert record.username == "slava"
        assert record.password == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_record_is_frozen(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(make_user())
        record = await SqlAlchemyUserRepository(mock_db_session).get(1)

        with pytest.raises(PydanticValidationError):
            record.username = "changed"

    @pytest.mark.asyncio
    async def test_get_by_username_missing(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(None)
        with pytest.raises(UserNotFoundError):
            await SqlAlchemyUserRepository(mock_db_session).get_by_username("ghost")

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(None)
        with pytest.raises(UserNotFoundError):
            await SqlAlchemyUserRepository(mock_db_session).get(42)

    @pytest.mark.asyncio
    async def test_connection_failure_is_not_not_found(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        with pytest.raises(DatabaseError) as exc_info:
            await SqlAlchemyUserRepository(mock_db_session).get_by_username("slava")
        assert not isinstance(exc_info.value, UserNotFoundError)

    @pytest.mark.asyncio
    async def test_list_and_count(self, mock_db_session):
        rows = MagicMock()
        rows.scalars.return_value.all.return_value = [make_user(1, "a"), make_user(2, "b")]
        total = MagicMock()
        total.scalar.return_value = 2
        mock_db_session.execute = AsyncMock(side_effect=[rows, total])
        repo = SqlAlchemyUserRepository(mock_db_session)

        users = await repo.list(limit=10, offset=0)

        assert [u.username for u in users] == ["a", "b"]
        assert await repo.count() == 2


class TestCreate:
    def setup_method(self):
        self.params = NewUser(username="slava", name="Slava", email="s@taskboard.io", password="$2b$04$h")

    @pytest.mark.asyncio
    async def test_create_flushes_and_returns_record(self, mock_db_session):
        def assign_defaults():
            user = mock_db_session.add.call_args.args[0]
            user.id = 5
            user.created_at = NOW
            user.updated_at = NOW

        mock_db_session.flush = AsyncMock(side_effect=assign_defaults)
        repo = SqlAlchemyUserRepository(mock_db_session)

        record = await repo.create(self.params)

        assert record.id == 5
        assert record.password == "$2b$04$h"
        mock_db_session.add.assert_called_once()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_user_exists(self, mock_db_session):
        mock_db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        with pytest.raises(UserAlreadyExistsError):
            await SqlAlchemyUserRepository(mock_db_session).create(self.params)

    @pytest.mark.asyncio
    async def test_other_failure_maps_to_database_error(self, mock_db_session):
        mock_db_session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))
        with pytest.raises(DatabaseError):
            await SqlAlchemyUserRepository(mock_db_session).create(self.params)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_applies_changes(self, mock_db_session):
        row = make_user()
        mock_db_session.execute.return_value = result_with(row)

        record = await SqlAlchemyUserRepository(mock_db_session).update(1, {"name": "Vyacheslav"})

        assert record.name == "Vyacheslav"
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, mock_db_session):
        with pytest.raises(ValueError):
            await SqlAlchemyUserRepository(mock_db_session).update(1, {"password": "x"})

    @pytest.mark.asyncio
    async def test_update_username_conflict(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(make_user())
        mock_db_session.flush.side_effect = IntegrityError("UPDATE", {}, Exception("duplicate key"))

        with pytest.raises(UserAlreadyExistsError):
            await SqlAlchemyUserRepository(mock_db_session).update(1, {"username": "taken"})

    @pytest.mark.asyncio
    async def test_update_missing_user(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(None)
        with pytest.raises(UserNotFoundError):
            await SqlAlchemyUserRepository(mock_db_session).update(9, {"name": "x"})


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing_user(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock(rowcount=1)

        await SqlAlchemyUserRepository(mock_db_session).delete(1)

        statement = mock_db_session.execute.await_args.args[0]
        assert statement.is_delete
        assert statement.table.name == "users"

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock(rowcount=0)
        with pytest.raises(UserNotFoundError):
            await SqlAlchemyUserRepository(mock_db_session).delete(9)

    @pytest.mark.asyncio
    async def test_delete_connection_failure(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("DELETE", {}, Exception("gone"))
        with pytest.raises(DatabaseError):
            await SqlAlchemyUserRepository(mock_db_session).delete(1)
