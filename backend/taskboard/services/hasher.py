"""
TaskBoard Backend - Password Hasher
===================================

What:  One-way, salted, slow hashing of passwords and verification of a
       plaintext against a stored hash.
How:   `PasswordHasher` is the abstract contract; `BcryptHasher` implements
       it with the `bcrypt` library. bcrypt is CPU-bound (tens of
       milliseconds at cost 10), so every call runs in a worker thread via
       asyncio.to_thread and the event loop keeps serving other requests.
Who:   Injected into AuthService. One BcryptHasher is shared by the whole
       process; it holds no mutable state.

Failure modes:
    hash()   → HashingError           (password over 72 bytes, library error)
    verify() → PasswordMismatchError  (wrong password)
             → HashingError           (stored value is not a bcrypt hash)

verify_unknown() checks the password against a throwaway hash made at start-up.
It always fails silently and costs one bcrypt comparison, so a sign-in for an
unknown username takes as long as one with a wrong password.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod

import bcrypt

from taskboard.exceptions import HashingError, PasswordMismatchError

logger = logging.getLogger(__name__)

# bcrypt ignores (or, in recent releases, rejects) input past 72 bytes
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher(ABC):
    """
    Contract for password hashing.

    Implementations must produce a different output for the same plaintext
    on every call (random salt), and `verify(hash(p), p)` must succeed.
    """

    @abstractmethod
    async def hash(self, plaintext: str) -> str:
        """Return the encoded hash of `plaintext`. Raises HashingError."""
        ...

    @abstractmethod
    async def verify(self, hashed: str, plaintext: str) -> None:
        """
        Return normally when `plaintext` matches `hashed`.

        Raises PasswordMismatchError on mismatch and HashingError when
        `hashed` cannot be interpreted.
        """
        ...

    @abstractmethod
    async def verify_unknown(self, plaintext: str) -> None:
        """Spend the cost of one `verify` without any stored hash. Never raises."""
        ...


class BcryptHasher(PasswordHasher):
    """bcrypt with a configurable cost factor (BCRYPT_ROUNDS)."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        # Hashed at `rounds`, the cost of every stored hash
        self._dummy_hash = bcrypt.hashpw(uuid.uuid4().hex.encode("ascii"), bcrypt.gensalt(rounds=rounds))

    async def hash(self, plaintext: str) -> str:
        encoded = plaintext.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            raise HashingError(
                message="Password is too long to hash",
                context={"length_bytes": len(encoded)},
            )
        try:
            hashed = await asyncio.to_thread(
                bcrypt.hashpw, encoded, bcrypt.gensalt(rounds=self.rounds)
            )
        except ValueError as e:
            logger.error("bcrypt.hashpw failed: %s", e)
            raise HashingError(context={"error_type": type(e).__name__}) from e
        return hashed.decode("utf-8")

    async def verify(self, hashed: str, plaintext: str) -> None:
        encoded = plaintext.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            # No stored hash can match an input bcrypt would not accept
            raise PasswordMismatchError()
        try:
            matches = await asyncio.to_thread(
                bcrypt.checkpw, encoded, hashed.encode("utf-8")
            )
        except ValueError as e:
            logger.error("Stored password hash is not a valid bcrypt hash")
            raise HashingError(
                message="Stored password hash is invalid",
                context={"error_type": type(e).__name__},
            ) from e
        if not matches:
            raise PasswordMismatchError()

    async def verify_unknown(self, plaintext: str) -> None:
        encoded = plaintext.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
        await asyncio.to_thread(bcrypt.checkpw, encoded, self._dummy_hash)
