"""
TaskBoard Backend - User SQLAlchemy Model
=========================================

What:  ORM model for the `users` table in PostgreSQL.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for
       migrations.
Who:   Used only by SqlAlchemyUserRepository. Everything above the
       repository works with the immutable UserRecord instead.

Table Design:
    - SERIAL primary key: the numeric id is also the session bucket key and
      the prefix of every session token
    - username: UNIQUE constraint is the storage-level backstop against two
      concurrent sign-ups racing past the service's existence check
    - password: bcrypt hash (60 chars), never the plaintext
    - created_at / updated_at: UTC with timezone
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Integer, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A registered account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Login name, unique across all users",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # bcrypt output is always 60 characters; 255 leaves room for a future algorithm
    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt hash of the password",
    )

    avatar: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="Public URL of the avatar image, if any",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    # Python-side defaults so the values are known right after flush
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
