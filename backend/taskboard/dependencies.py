"""
TaskBoard Backend - Dependency Providers and Session Gate
=========================================================

What:  FastAPI providers that wire services to their concrete stores, and
       the `require_session` gate that protects authenticated routes.
How:   Settings are read here, once per provider, and passed into
       constructors. Services never import `settings` themselves.
Who:   Routes declare `Depends(...)` on these providers; tests replace the
       store providers through `app.dependency_overrides`.

Session gate:
    cookie missing        ─┐
    token malformed       ─┼─▶ UnauthorizedError (401, cookie expired)
    token not live        ─┘
    Redis unreachable     ───▶ SessionStorageError (500)
    token live            ───▶ SessionContext(user_id, token) to the handler
"""

import logging
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as aioredis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import settings
from taskboard.database import get_db_session
from taskboard.exceptions import SessionNotFoundError, UnauthorizedError
from taskboard.services.auth_service import AuthService
from taskboard.services.hasher import BcryptHasher, PasswordHasher
from taskboard.services.session_store import RedisSessionStore, SessionStore, user_id_from_token
from taskboard.services.user_repository import SqlAlchemyUserRepository, UserRepository
from taskboard.services.user_service import UserService
from taskboard.session_storage import get_redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Authenticated request state, produced by `require_session`."""

    user_id: int
    token: str


# ── Providers ─────────────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    return BcryptHasher(rounds=settings.bcrypt_rounds)


def get_session_store(client: aioredis.Redis = Depends(get_redis)) -> SessionStore:
    return RedisSessionStore(
        client,
        lifetime_seconds=settings.session_lifetime,
        max_sessions_per_user=settings.max_sessions_per_user,
        key_prefix=settings.session_key_prefix,
    )


def get_user_repository(session: AsyncSession = Depends(get_db_session)) -> UserRepository:
    return SqlAlchemyUserRepository(session)


def get_auth_service(
    users: UserRepository = Depends(get_user_repository),
    sessions: SessionStore = Depends(get_session_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    return AuthService(
        identity_store=users,
        session_store=sessions,
        hasher=hasher,
        min_username_len=settings.min_username_len,
        max_username_len=settings.max_username_len,
        max_name_len=settings.max_name_len,
    )


def get_user_service(
    users: UserRepository = Depends(get_user_repository),
    sessions: SessionStore = Depends(get_session_store),
) -> UserService:
    return UserService(
        users,
        min_username_len=settings.min_username_len,
        max_username_len=settings.max_username_len,
        max_name_len=settings.max_name_len,
        session_store=sessions,
    )


# ── Session Gate ──────────────────────────────────────────────────────────
async def require_session(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> SessionContext:
    """
    Reject the request with 401 unless it carries a live session cookie.

    The user id embedded in the token only selects the bucket to look in;
    the token must still be present in that bucket.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise UnauthorizedError()

    try:
        user_id = user_id_from_token(token)
    except ValueError:
        logger.info("Rejected malformed session cookie")
        raise UnauthorizedError(message="Invalid session")

    try:
        user_id = await auth.check_auth(user_id, token)
    except SessionNotFoundError as e:
        logger.info("Rejected unknown or expired session for user %s", user_id)
        raise UnauthorizedError(message="Session expired or revoked") from e

    return SessionContext(user_id=user_id, token=token)
