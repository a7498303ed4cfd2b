"""
TaskBoard Backend - User Repository (Identity Store)
====================================================

What:  Lookup and persistence of user identities in PostgreSQL.
How:   `IdentityStore` is the narrow contract AuthService needs
       (get_by_username, create). `UserRepository` extends it with the
       user-management queries UserService uses. `SqlAlchemyUserRepository`
       implements both over the request's AsyncSession.
Who:   Built per request by `get_user_repository` in dependencies.py.

Error Translation:
    row missing            → UserNotFoundError (lookups, update, delete)
    UNIQUE(username) hit   → UserAlreadyExistsError
    any other SQLAlchemy   → DatabaseError (details logged, never returned)

The UNIQUE constraint is the authority on uniqueness. AuthService's
existence check before create is only a fast path for the common case; two
concurrent sign-ups with the same username both pass it, and the second
insert is rejected here.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import DatabaseError, UserAlreadyExistsError, UserNotFoundError
from taskboard.models.user import User
from taskboard.schemas.user import NewUser, UserRecord

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"username", "name", "email", "avatar"})


class IdentityStore(ABC):
    """The identity operations the auth lifecycle depends on."""

    @abstractmethod
    async def get_by_username(self, username: str) -> UserRecord:
        """Raises UserNotFoundError when no such user exists."""
        ...

    @abstractmethod
    async def create(self, params: NewUser) -> UserRecord:
        """Raises UserAlreadyExistsError when the username is taken."""
        ...


class UserRepository(IdentityStore):
    """IdentityStore plus the queries behind the /users endpoints."""

    @abstractmethod
    async def get(self, user_id: int) -> UserRecord:
        ...

    @abstractmethod
    async def list(self, limit: int = 20, offset: int = 0) -> List[UserRecord]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def update(self, user_id: int, changes: Dict[str, Any]) -> UserRecord:
        """Apply `changes` (a subset of UPDATABLE_FIELDS) and return the new record."""
        ...

    @abstractmethod
    async def delete(self, user_id: int) -> None:
        """Raises UserNotFoundError when no such user exists."""
        ...


class SqlAlchemyUserRepository(UserRepository):
    """
    UserRepository over an async SQLAlchemy session.

    Writes are flushed, not committed; `get_db_session` commits once the
    request succeeds.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _one(self, stmt, lookup: str) -> User:
        try:
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user %s: %s", lookup, type(e).__name__)
            raise DatabaseError(context={"lookup": lookup, "error_type": type(e).__name__}) from e
        if row is None:
            raise UserNotFoundError(lookup=lookup)
        return row

    async def get_by_username(self, username: str) -> UserRecord:
        row = await self._one(select(User).where(User.username == username), username)
        return UserRecord.model_validate(row)

    async def get(self, user_id: int) -> UserRecord:
        row = await self._one(select(User).where(User.id == user_id), str(user_id))
        return UserRecord.model_validate(row)

    async def create(self, params: NewUser) -> UserRecord:
        user = User(
            username=params.username,
            name=params.name,
            email=params.email,
            password=params.password,
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.info("Username already taken: %s", params.username)
            raise UserAlreadyExistsError(username=params.username) from e
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", type(e).__name__, exc_info=True)
            raise DatabaseError(context={"operation": "create_user"}) from e

        logger.info("User created: id=%s", user.id)
        return UserRecord.model_validate(user)

    async def list(self, limit: int = 20, offset: int = 0) -> List[UserRecord]:
        try:
            result = await self.session.execute(
                select(User).order_by(User.id).limit(limit).offset(offset)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", type(e).__name__, exc_info=True)
            raise DatabaseError(context={"operation": "list_users"}) from e
        return [UserRecord.model_validate(row) for row in rows]

    async def count(self) -> int:
        try:
            result = await self.session.execute(select(func.count(User.id)))
        except SQLAlchemyError as e:
            logger.error("Database error counting users: %s", type(e).__name__)
            raise DatabaseError(context={"operation": "count_users"}) from e
        return result.scalar() or 0

    async def update(self, user_id: int, changes: Dict[str, Any]) -> UserRecord:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        user = await self._one(select(User).where(User.id == user_id), str(user_id))
        for field, value in changes.items():
            setattr(user, field, value)
        try:
            await self.session.flush()
            # updated_at is set by the onupdate hook during flush
            await self.session.refresh(user)
        except IntegrityError as e:
            raise UserAlreadyExistsError(username=changes.get("username")) from e
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user_id, type(e).__name__)
            raise DatabaseError(context={"operation": "update_user", "user_id": user_id}) from e

        logger.info("User %s updated fields: %s", user_id, sorted(changes))
        return UserRecord.model_validate(user)

    async def delete(self, user_id: int) -> None:
        try:
            result = await self.session.execute(delete(User).where(User.id == user_id))
        except SQLAlchemyError as e:
            logger.error("Database error deleting user %s: %s", user_id, type(e).__name__)
            raise DatabaseError(context={"operation": "delete_user", "user_id": user_id}) from e
        if result.rowcount == 0:
            raise UserNotFoundError(lookup=str(user_id))
        logger.info("User %s deleted", user_id)
