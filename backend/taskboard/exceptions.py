"""
TaskBoard Backend - Exception Hierarchy
=======================================

What:  Application-specific exceptions for every failure the API can report.
How:   Each exception carries a client-safe `message` and a `context` dict
       that is logged but never returned. Global handlers in main.py map the
       classes below to HTTP status codes.
Who:   Raised by hasher, stores, repositories and services; caught by the
       global handlers and, in a few places, translated by routes.

Exception Hierarchy:
    TaskBoardError (base)
    ├── ValidationError              → 400 Bad Request
    ├── UnauthorizedError            → 401 Unauthorized (session cookie expired)
    │   └── WrongLoginOrPasswordError
    ├── NotFoundError                → 404 Not Found
    │   ├── UserNotFoundError
    │   └── SessionNotFoundError     → 401 when it reaches HTTP
    ├── ConflictError                → 409 Conflict
    │   └── UserAlreadyExistsError
    ├── PasswordMismatchError        (internal, converted by AuthService)
    ├── HashingError                 → 500 Internal Server Error
    │   └── HashedPasswordError
    ├── StorageUnavailableError      → 500 Internal Server Error
    │   ├── DatabaseError
    │   └── SessionStorageError
    └── RateLimitExceededError       → 429 Too Many Requests

"Not found" and "storage unavailable" never share a branch: a missing
session means "log in again", an unreachable Redis is a server error.
"""

from typing import Any, Dict, Optional


class TaskBoardError(Exception):
    """
    Base exception for all TaskBoard application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TaskBoardError):
    """
    Raised when client input breaks a business rule.

    Schema-level problems (missing fields, wrong types) are answered by
    FastAPI with 422 before our code runs; this covers rules that depend on
    configuration, such as username length limits.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


# ══════════════════════════════════════════════════════════════════════════
# Authentication
# ══════════════════════════════════════════════════════════════════════════


class UnauthorizedError(TaskBoardError):
    """Request lacks a valid session (no cookie, malformed or unknown token)."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class WrongLoginOrPasswordError(UnauthorizedError):
    """
    Credentials did not match.

    The sign-in route also raises this for unknown usernames so that the
    response body cannot be used to enumerate accounts.
    """

    def __init__(
        self,
        message: str = "Wrong login or password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PasswordMismatchError(TaskBoardError):
    """Plaintext does not match the stored hash. Raised by PasswordHasher.verify."""

    def __init__(
        self,
        message: str = "Password does not match",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class HashingError(TaskBoardError):
    """
    The hashing primitive failed.

    When:  Password longer than bcrypt's 72-byte input limit, malformed stored
           hash, or an internal library error.
    HTTP:  500, generic message.
    """

    def __init__(
        self,
        message: str = "Password hashing failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class HashedPasswordError(HashingError):
    """HashingError re-raised by AuthService.sign_up with the step that failed."""

    def __init__(
        self,
        message: str = "Could not hash the password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


# ══════════════════════════════════════════════════════════════════════════
# Lookup / Uniqueness
# ══════════════════════════════════════════════════════════════════════════


class NotFoundError(TaskBoardError):
    """Raised when a requested resource does not exist."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class UserNotFoundError(NotFoundError):
    def __init__(self, lookup: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(resource="user", resource_id=lookup, context=context)


class SessionNotFoundError(NotFoundError):
    """
    The token is not live in the given user's bucket.

    The token itself is kept out of the message and the context.
    """

    def __init__(self, user_id: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if user_id is not None:
            ctx["user_id"] = user_id
        super().__init__(resource="session", context=ctx)


class ConflictError(TaskBoardError):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UserAlreadyExistsError(ConflictError):
    def __init__(self, username: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if username:
            ctx["username"] = username
        super().__init__(message="User with such username already exists", context=ctx)


# ══════════════════════════════════════════════════════════════════════════
# Infrastructure
# ══════════════════════════════════════════════════════════════════════════


class StorageUnavailableError(TaskBoardError):
    """
    A backing store could not be reached or failed mid-operation.

    Not retried at the service layer. The client always receives a generic
    message; the driver error is kept in `context` for the logs.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(StorageUnavailableError):
    """Postgres query, insert or update failed unexpectedly."""

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SessionStorageError(StorageUnavailableError):
    """Redis unreachable, timed out, or returned an error."""

    def __init__(
        self,
        message: str = "Session storage is unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(TaskBoardError):
    """Client exceeded the per-IP limit on the credential endpoints."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many authentication attempts. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
