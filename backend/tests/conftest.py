"""
TaskBoard Backend - Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Test environment variables are set before anything from `taskboard`
       is imported, so the module-level settings, engine and Redis client
       are built from them. No fixture opens a real database or Redis
       connection.

Fixture Inventory:
    ├── user_repo:        InMemoryUserRepository (IdentityStore + UserRepository)
    ├── session_store:    InMemorySessionStore (SessionStore)
    ├── hasher:           BcryptHasher(rounds=4)
    ├── auth_service:     AuthService over the three above
    ├── mock_db_session:  AsyncMock standing in for AsyncSession
    ├── mock_redis:       MagicMock redis.asyncio client with a pipeline
    ├── fake_redis:       fakeredis client with real Redis command semantics
    └── test_client:      httpx AsyncClient with stores overridden
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "10000"

from datetime import datetime, timezone
from http.cookies import SimpleCookie
from itertools import count
from typing import Any, Dict, List, Set
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskboard.exceptions import SessionNotFoundError, UserAlreadyExistsError, UserNotFoundError
from taskboard.schemas.user import NewUser, UserRecord
from taskboard.services.auth_service import AuthService
from taskboard.services.hasher import BcryptHasher
from taskboard.services.session_store import SessionStore, new_token
from taskboard.services.user_repository import UserRepository


# ══════════════════════════════════════════════════════════════════════════
# In-memory store doubles
# ══════════════════════════════════════════════════════════════════════════


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        self.users: Dict[int, UserRecord] = {}
        self._ids = count(1)

    async def get_by_username(self, username: str) -> UserRecord:
        for user in self.users.values():
            if user.username == username:
                return user
        raise UserNotFoundError(lookup=username)

    async def get(self, user_id: int) -> UserRecord:
        try:
            return self.users[user_id]
        except KeyError:
            raise UserNotFoundError(lookup=str(user_id))

    async def create(self, params: NewUser) -> UserRecord:
        if any(u.username == params.username for u in self.users.values()):
            raise UserAlreadyExistsError(username=params.username)
        now = datetime.now(timezone.utc)
        user = UserRecord(
            id=next(self._ids),
            created_at=now,
            updated_at=now,
            **params.model_dump(),
        )
        self.users[user.id] = user
        return user

    async def list(self, limit: int = 20, offset: int = 0) -> List[UserRecord]:
        return sorted(self.users.values(), key=lambda u: u.id)[offset:offset + limit]

    async def count(self) -> int:
        return len(self.users)

    async def update(self, user_id: int, changes: Dict[str, Any]) -> UserRecord:
        user = await self.get(user_id)
        new_name = changes.get("username")
        if new_name and any(
            u.username == new_name and u.id != user_id for u in self.users.values()
        ):
            raise UserAlreadyExistsError(username=new_name)
        updated = user.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.users[user_id] = updated
        return updated

    async def delete(self, user_id: int) -> None:
        if self.users.pop(user_id, None) is None:
            raise UserNotFoundError(lookup=str(user_id))


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self.buckets: Dict[int, Set[str]] = {}

    async def issue(self, user_id: int) -> str:
        token = new_token(user_id)
        self.buckets.setdefault(user_id, set()).add(token)
        return token

    async def validate(self, user_id: int, token: str) -> int:
        if token not in self.buckets.get(user_id, set()):
            raise SessionNotFoundError(user_id=user_id)
        return user_id

    async def revoke(self, user_id: int, token: str) -> None:
        bucket = self.buckets.get(user_id, set())
        if token not in bucket:
            raise SessionNotFoundError(user_id=user_id)
        bucket.discard(token)

    async def revoke_all(self, user_id: int) -> None:
        self.buckets.pop(user_id, None)

    def live_count(self) -> int:
        return sum(len(b) for b in self.buckets.values())


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def hasher():
    """Lowest bcrypt cost, so hashing takes about a millisecond."""
    return BcryptHasher(rounds=4)


@pytest.fixture
def auth_service(user_repo, session_store, hasher):
    return AuthService(identity_store=user_repo, session_store=session_store, hasher=hasher)


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = user
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_redis():
    """
    A mock redis.asyncio client.

    `client.pipeline()` returns an async context manager yielding `pipe`;
    queued commands are plain MagicMock calls and `pipe.execute` returns
    the results of HSET, EXPIRE and HLEN.
    """
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True, 1])
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)

    client = MagicMock()
    client.pipeline = MagicMock(return_value=pipe)
    client.hexists = AsyncMock(return_value=True)
    client.hdel = AsyncMock(return_value=1)
    client.delete = AsyncMock(return_value=1)
    client.hgetall = AsyncMock(return_value={})
    client.ping = AsyncMock(return_value=True)
    client.pipe = pipe
    return client


@pytest_asyncio.fixture
async def fake_redis():
    """An in-process Redis that executes MULTI/EXEC, TTLs and hashes for real."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def test_client(user_repo, session_store, hasher):
    """
    HTTPX AsyncClient routed straight into the app.

    The repository, session store and hasher providers are replaced with
    the in-memory fixtures, so tests can inspect state through `user_repo`
    and `session_store`.
    """
    from taskboard.dependencies import get_password_hasher, get_session_store, get_user_repository
    from taskboard.main import app

    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_password_hasher] = lambda: hasher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════


def session_cookie(response, name: str = "JSESSIONID") -> SimpleCookie:
    """Parse the session Set-Cookie header of `response`."""
    for header in response.headers.get_list("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        if name in cookie:
            return cookie
    raise AssertionError(f"No {name} cookie in response")


def cookie_header(token: str, name: str = "JSESSIONID") -> Dict[str, str]:
    return {"Cookie": f"{name}={token}"}


SLAVA = {
    "name": "Slava",
    "username": "slava",
    "email": "slava@taskboard.io",
    "password": "12345678",
}
