"""
TaskBoard Backend - User Schemas
================================

What:  The user record passed between layers, the parameters for creating one,
       and the HTTP request/response shapes of the users API.
How:   `UserRecord` is frozen and built from the ORM row with
       from_attributes, so callers receive a value, never a live row.
       `UserResponse` is the only shape that leaves the service, and it has
       no password field.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ══════════════════════════════════════════════════════════════════════════
# Internal records
# ══════════════════════════════════════════════════════════════════════════


class UserRecord(BaseModel):
    """A user identity as stored. `password` holds the bcrypt hash."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    name: str
    email: str
    password: str
    avatar: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class NewUser(BaseModel):
    """Parameters for IdentityStore.create. `password` is already hashed."""

    model_config = ConfigDict(frozen=True)

    username: str
    name: str
    email: str
    password: str


# ══════════════════════════════════════════════════════════════════════════
# HTTP models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """Public representation of a user, returned by the auth and users routes."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Numeric user id")
    username: str
    name: str
    email: str
    avatar: Optional[str] = Field(default=None, description="Avatar URL, null when unset")
    created_at: datetime
    updated_at: datetime


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total_count: int = Field(description="Total number of registered users")
    limit: int
    offset: int


class UserUpdateRequest(BaseModel):
    """
    Partial update of the current user. Omitted fields are left unchanged.

    Length limits for `username` and `name` come from configuration and are
    enforced by UserService, not here.
    """

    username: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_.\-]+$")
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    def changes(self) -> dict:
        """Fields the client actually sent."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
