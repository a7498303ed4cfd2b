"""
TaskBoard Backend - Auth Service (Session Lifecycle Orchestrator)
=================================================================

What:  Sign-up, sign-in, session check and logout.
How:   Composes an IdentityStore, a SessionStore and a PasswordHasher. The
       service holds only those references and the configured length limits,
       so one instance can serve concurrent requests without locking.
Who:   Called by the /auth routes and by the session gate in dependencies.py.

Sign-up flow:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐
    │  Length  │───▶│  Lookup  │───▶│   Hash   │───▶│  Create  │───▶│  Issue   │
    │  rules   │    │ username │    │ password │    │   user   │    │  token   │
    └──────────┘    └──────────┘    └──────────┘    └──────────┘    └──────────┘

    Length rules broken      → ValidationError, nothing looked up
    Found at lookup          → UserAlreadyExistsError, nothing written
    Lookup infrastructure    → propagated unchanged
    Hash failure             → HashedPasswordError (cause chained)
    Create conflict (race)   → UserAlreadyExistsError from the store
    Issue failure            → propagated; the user row stays, the client
                               can sign in later

Error Policy:
    Collaborator errors are never swallowed and never retried here. They
    pass through unchanged, except the two translations above and below:
    HashingError → HashedPasswordError on sign-up, and
    PasswordMismatchError → WrongLoginOrPasswordError on sign-in.
"""

import logging
from typing import Tuple

from taskboard.exceptions import (
    HashedPasswordError,
    HashingError,
    PasswordMismatchError,
    UserAlreadyExistsError,
    UserNotFoundError,
    WrongLoginOrPasswordError,
)
from taskboard.schemas.auth import SignInParams, SignUpParams
from taskboard.schemas.user import NewUser, UserRecord
from taskboard.services.hasher import PasswordHasher
from taskboard.services.session_store import SessionStore
from taskboard.services.user_repository import IdentityStore
from taskboard.services.user_service import check_name, check_username

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication and session lifecycle.

    Per-token state machine:  absent ──issue──▶ live ──revoke / TTL──▶ absent
    check_auth is a pure read and never changes state.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        session_store: SessionStore,
        hasher: PasswordHasher,
        min_username_len: int = 3,
        max_username_len: int = 32,
        max_name_len: int = 64,
    ):
        self.identity_store = identity_store
        self.session_store = session_store
        self.hasher = hasher
        self.min_username_len = min_username_len
        self.max_username_len = max_username_len
        self.max_name_len = max_name_len

    async def sign_up(self, params: SignUpParams) -> Tuple[UserRecord, str]:
        """
        Register a new user and open a session for them.

        Returns:
            (created user, session token)

        Raises:
            ValidationError:         username or name outside the configured limits
            UserAlreadyExistsError:  username taken (checked or raced)
            HashedPasswordError:     hashing failed
            StorageUnavailableError: either store failed
        """
        check_username(params.username, self.min_username_len, self.max_username_len)
        check_name(params.name, self.max_name_len)

        # ── Step 1: Username must be free ─────────────────────────────────
        try:
            await self.identity_store.get_by_username(params.username)
        except UserNotFoundError:
            pass
        else:
            logger.info("Sign-up rejected: username already taken")
            raise UserAlreadyExistsError(username=params.username)

        # ── Step 2: Hash ──────────────────────────────────────────────────
        try:
            hashed = await self.hasher.hash(params.password)
        except HashingError as e:
            raise HashedPasswordError(
                context={"step": "sign_up", "error_type": type(e).__name__, **e.context}
            ) from e

        # ── Step 3: Persist ───────────────────────────────────────────────
        user = await self.identity_store.create(
            NewUser(
                username=params.username,
                name=params.name,
                email=params.email,
                password=hashed,
            )
        )

        # ── Step 4: Session ───────────────────────────────────────────────
        token = await self.session_store.issue(user.id)

        logger.info("User %s signed up", user.id)
        return user, token

    async def sign_in(self, params: SignInParams) -> Tuple[UserRecord, str]:
        """
        Check credentials and open a session.

        Raises:
            UserNotFoundError:          no such username (collapsed into a
                                        generic 401 by the route); the
                                        password is still checked against a
                                        dummy hash first
            WrongLoginOrPasswordError:  password mismatch
            StorageUnavailableError:    either store failed
        """
        try:
            user = await self.identity_store.get_by_username(params.username)
        except UserNotFoundError:
            await self.hasher.verify_unknown(params.password)
            raise

        try:
            await self.hasher.verify(user.password, params.password)
        except PasswordMismatchError as e:
            logger.info("Sign-in rejected for user %s: wrong password", user.id)
            raise WrongLoginOrPasswordError() from e

        token = await self.session_store.issue(user.id)
        logger.info("User %s signed in", user.id)
        return user, token

    async def check_auth(self, user_id: int, token: str) -> int:
        """Return `user_id` when the token is live for it, else SessionNotFoundError."""
        return await self.session_store.validate(user_id, token)

    async def logout(self, user_id: int, token: str) -> None:
        await self.session_store.revoke(user_id, token)
        logger.info("User %s logged out", user_id)
