"""
TaskBoard Backend - Session Store
=================================

What:  Issues, validates and revokes opaque session tokens, grouped per user.
How:   Each user owns one Redis hash ("bucket") at `<prefix><user_id>`.
       Every field is a live token; its value is the issue timestamp. The
       whole bucket carries a TTL equal to the session lifetime, refreshed
       on every issue.
Who:   AuthService (issue on sign-up / sign-in, validate from the session
       gate, revoke on logout).

Token format:
    "<user_id>$<uuid4 hex>", e.g. "42$9f1c...". The prefix tells the session
    gate which bucket to look in; it is never trusted as proof of identity,
    because validate() only checks the bucket of the user id it is given.

Redis commands per operation:
    issue       MULTI / HSET / EXPIRE / HLEN / EXEC (+ HGETALL, HDEL over the cap)
    validate    HEXISTS
    revoke      HDEL
    revoke_all  DEL

Concurrency:
    Two concurrent issues for the same user write different fields of the
    same hash, so neither is lost; HSET creates the bucket if it is missing.
    Redis executes each command (and each MULTI/EXEC block) atomically.
    Eviction only removes tokens strictly older than the one just issued,
    so concurrent issues never evict each other's newer tokens.
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from taskboard.exceptions import SessionNotFoundError, SessionStorageError

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "$"


def new_token(user_id: int) -> str:
    return f"{user_id}{TOKEN_SEPARATOR}{uuid.uuid4().hex}"


def user_id_from_token(token: str) -> int:
    """
    Extract the user id prefix of a session token.

    Raises ValueError when the token does not look like "<digits>$<rest>".
    """
    prefix, sep, rest = token.partition(TOKEN_SEPARATOR)
    if not sep or not rest or not prefix.isdigit():
        raise ValueError("Malformed session token")
    return int(prefix)


class SessionStore(ABC):
    """Contract for the per-user session buckets."""

    @abstractmethod
    async def issue(self, user_id: int) -> str:
        """Create a fresh token in the user's bucket and return it."""
        ...

    @abstractmethod
    async def validate(self, user_id: int, token: str) -> int:
        """Return `user_id` if `token` is live for it, else SessionNotFoundError."""
        ...

    @abstractmethod
    async def revoke(self, user_id: int, token: str) -> None:
        """Remove `token` from the user's bucket, or SessionNotFoundError if absent."""
        ...

    @abstractmethod
    async def revoke_all(self, user_id: int) -> None:
        """Drop the user's whole bucket. A missing bucket is not an error."""
        ...


class RedisSessionStore(SessionStore):
    """
    SessionStore backed by redis.asyncio.

    Args:
        client:                 Shared Redis client (decode_responses=True)
        lifetime_seconds:       Bucket TTL, refreshed on every issue
        max_sessions_per_user:  Oldest tokens beyond this count are evicted
        key_prefix:             Namespace for bucket keys
        clock:                  Issue timestamp source, replaceable in tests
    """

    def __init__(
        self,
        client: aioredis.Redis,
        lifetime_seconds: int,
        max_sessions_per_user: int = 32,
        key_prefix: str = "sessions:",
        clock=time.time,
    ):
        self.client = client
        self.lifetime_seconds = lifetime_seconds
        self.max_sessions_per_user = max_sessions_per_user
        self.key_prefix = key_prefix
        self.clock = clock

    def _bucket(self, user_id: int) -> str:
        return f"{self.key_prefix}{user_id}"

    async def issue(self, user_id: int) -> str:
        token = new_token(user_id)
        key = self._bucket(user_id)
        issued_at = self.clock()
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(key, token, f"{issued_at:.6f}")
                pipe.expire(key, self.lifetime_seconds)
                pipe.hlen(key)
                _, _, live = await pipe.execute()

            if live > self.max_sessions_per_user:
                await self._evict_older_than(key, issued_at)
        except (RedisError, asyncio.TimeoutError) as e:
            logger.error("Session issue failed for user %s: %s", user_id, type(e).__name__)
            raise SessionStorageError(
                context={"user_id": user_id, "operation": "issue", "error_type": type(e).__name__}
            ) from e

        logger.debug("Issued session for user %s", user_id)
        return token

    async def _evict_older_than(self, key: str, issued_at: float) -> None:
        """
        Trim the bucket back to the cap, oldest first.

        The bucket is read outside the transaction, so a concurrent issue may
        have added tokens since. Only tokens issued before `issued_at` are
        candidates: the caller's own token and anything newer survive.
        """
        sessions = await self.client.hgetall(key)
        excess = len(sessions) - self.max_sessions_per_user
        if excess <= 0:
            return
        older = [t for t in sessions if float(sessions[t]) < issued_at]
        by_age = sorted(older, key=lambda t: float(sessions[t]))
        evicted = by_age[:excess]
        if evicted:
            await self.client.hdel(key, *evicted)
            logger.info("Evicted %d stale session(s) from %s", len(evicted), key)

    async def validate(self, user_id: int, token: str) -> int:
        try:
            exists = await self.client.hexists(self._bucket(user_id), token)
        except (RedisError, asyncio.TimeoutError) as e:
            logger.error("Session lookup failed for user %s: %s", user_id, type(e).__name__)
            raise SessionStorageError(
                context={"user_id": user_id, "operation": "validate", "error_type": type(e).__name__}
            ) from e
        if not exists:
            raise SessionNotFoundError(user_id=user_id)
        return user_id

    async def revoke(self, user_id: int, token: str) -> None:
        try:
            removed = await self.client.hdel(self._bucket(user_id), token)
        except (RedisError, asyncio.TimeoutError) as e:
            logger.error("Session revoke failed for user %s: %s", user_id, type(e).__name__)
            raise SessionStorageError(
                context={"user_id": user_id, "operation": "revoke", "error_type": type(e).__name__}
            ) from e
        if removed == 0:
            raise SessionNotFoundError(user_id=user_id)
        logger.debug("Revoked session for user %s", user_id)

    async def revoke_all(self, user_id: int) -> None:
        try:
            dropped = await self.client.delete(self._bucket(user_id))
        except (RedisError, asyncio.TimeoutError) as e:
            logger.error("Session purge failed for user %s: %s", user_id, type(e).__name__)
            raise SessionStorageError(
                context={"user_id": user_id, "operation": "revoke_all", "error_type": type(e).__name__}
            ) from e
        logger.info("Dropped session bucket for user %s (existed=%s)", user_id, bool(dropped))
