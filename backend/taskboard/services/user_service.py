"""
TaskBoard Backend - User Service
================================

What:  Listing, fetching, updating and deleting user profiles.
How:   Thin layer over UserRepository that enforces the configurable length
       rules (MIN/MAX_USERNAME_LEN, MAX_NAME_LEN) before any write. The same
       `check_username` / `check_name` functions guard sign-up in AuthService.
Who:   Called by the /users routes.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from taskboard.exceptions import ValidationError
from taskboard.schemas.user import UserRecord
from taskboard.services.session_store import SessionStore
from taskboard.services.user_repository import UserRepository

logger = logging.getLogger(__name__)


def check_username(username: str, min_len: int, max_len: int) -> None:
    if not min_len <= len(username) <= max_len:
        raise ValidationError(
            message=f"Username must be between {min_len} and {max_len} characters",
            field="username",
        )


def check_name(name: str, max_len: int) -> None:
    if not name.strip():
        raise ValidationError(message="Name must not be empty", field="name")
    if len(name) > max_len:
        raise ValidationError(
            message=f"Name must be at most {max_len} characters",
            field="name",
        )


class UserService:
    def __init__(
        self,
        repository: UserRepository,
        min_username_len: int = 3,
        max_username_len: int = 32,
        max_name_len: int = 64,
        session_store: Optional[SessionStore] = None,
    ):
        self.repository = repository
        self.min_username_len = min_username_len
        self.max_username_len = max_username_len
        self.max_name_len = max_name_len
        self.session_store = session_store

    def validate_username(self, username: str) -> None:
        check_username(username, self.min_username_len, self.max_username_len)

    def validate_name(self, name: str) -> None:
        check_name(name, self.max_name_len)

    async def get(self, user_id: int) -> UserRecord:
        return await self.repository.get(user_id)

    async def list(self, limit: int = 20, offset: int = 0) -> Tuple[List[UserRecord], int]:
        """Return one page of users and the total count."""
        users = await self.repository.list(limit=limit, offset=offset)
        total = await self.repository.count()
        return users, total

    async def update(self, user_id: int, changes: Dict[str, Any]) -> UserRecord:
        """
        Partial update. An empty `changes` returns the current record unchanged.

        Raises:
            ValidationError:         username or name outside the configured limits
            UserNotFoundError:       no such user
            UserAlreadyExistsError:  new username is taken
        """
        if "username" in changes:
            self.validate_username(changes["username"])
        if "name" in changes:
            self.validate_name(changes["name"])

        if not changes:
            return await self.repository.get(user_id)
        return await self.repository.update(user_id, changes)

    async def delete(self, user_id: int) -> None:
        """
        Remove the user row, then every session of that user.

        The row delete is only flushed; if dropping the sessions fails the
        error propagates and the request's transaction rolls back.

        Raises:
            UserNotFoundError:        no such user
            StorageUnavailableError:  either store failed
        """
        await self.repository.delete(user_id)
        if self.session_store is not None:
            await self.session_store.revoke_all(user_id)
