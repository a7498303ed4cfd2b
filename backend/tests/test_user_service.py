"""
TaskBoard Backend - User Service Tests
======================================

What we test:
    ✅ username / name length limits come from the constructor
    ✅ valid partial updates reach the repository
    ✅ list returns the page and the total count
    ✅ delete removes the row and every session of the user
"""

from unittest.mock import AsyncMock

import pytest

from taskboard.exceptions import SessionNotFoundError, UserAlreadyExistsError, UserNotFoundError, ValidationError
from taskboard.schemas.user import NewUser
from taskboard.services.user_service import UserService


async def seed(repo, *usernames):
    for username in usernames:
        await repo.create(
            NewUser(username=username, name=username.title(), email=f"{username}@taskboard.io", password="h")
        )


class TestValidation:
    def setup_method(self):
        self.service = UserService(repository=None, min_username_len=3, max_username_len=8, max_name_len=10)

    @pytest.mark.parametrize("username", ["abc", "abcdefgh"])
    def test_username_within_limits(self, username):
        self.service.validate_username(username)

    @pytest.mark.parametrize("username", ["ab", "abcdefghi"])
    def test_username_outside_limits(self, username):
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_username(username)
        assert exc_info.value.field == "username"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 11])
    def test_bad_names(self, name):
        with pytest.raises(ValidationError):
            self.service.validate_name(name)


class TestOperations:
    @pytest.mark.asyncio
    async def test_update_persists(self, user_repo):
        await seed(user_repo, "slava")
        service = UserService(user_repo)

        updated = await service.update(1, {"name": "Vyacheslav", "username": "slava2"})

        assert updated.name == "Vyacheslav"
        assert (await user_repo.get(1)).username == "slava2"

    @pytest.mark.asyncio
    async def test_update_validates_before_writing(self, user_repo):
        await seed(user_repo, "slava")
        service = UserService(user_repo, min_username_len=3)

        with pytest.raises(ValidationError):
            await service.update(1, {"username": "sl"})
        assert (await user_repo.get(1)).username == "slava"

    @pytest.mark.asyncio
    async def test_update_to_taken_username(self, user_repo):
        await seed(user_repo, "slava", "ann")
        with pytest.raises(UserAlreadyExistsError):
            await UserService(user_repo).update(2, {"username": "slava"})

    @pytest.mark.asyncio
    async def test_empty_update_returns_current(self, user_repo):
        await seed(user_repo, "slava")
        record = await UserService(user_repo).update(1, {})
        assert record.username == "slava"

    @pytest.mark.asyncio
    async def test_list_pages(self, user_repo):
        await seed(user_repo, "ann", "bob", "cid")
        users, total = await UserService(user_repo).list(limit=2, offset=1)

        assert [u.username for u in users] == ["bob", "cid"]
        assert total == 3

    @pytest.mark.asyncio
    async def test_delete_drops_row_and_sessions(self, user_repo, session_store):
        await seed(user_repo, "slava", "ann")
        token = await session_store.issue(1)
        other = await session_store.issue(2)
        service = UserService(user_repo, session_store=session_store)

        await service.delete(1)

        with pytest.raises(UserNotFoundError):
            await user_repo.get(1)
        with pytest.raises(SessionNotFoundError):
            await session_store.validate(1, token)
        assert await session_store.validate(2, other) == 2

    @pytest.mark.asyncio
    async def test_delete_missing_user_leaves_sessions(self, user_repo):
        sessions = AsyncMock()
        with pytest.raises(UserNotFoundError):
            await UserService(user_repo, session_store=sessions).delete(9)
        sessions.revoke_all.assert_not_awaited()
