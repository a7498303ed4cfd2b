"""ORM models. Importing this package registers every table on Base.metadata."""

from taskboard.models.user import User

__all__ = ["User"]
