"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

Passwords are UTF-8 encoded and truncated to bcrypt's 72-byte limit before
hashing and verification, so both sides always see the same input. The API
layer caps password length well below that for ASCII input.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import bcrypt

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, deliberately slow one-way hashing.

    Every call to hash() draws a fresh salt, so hashing the same password
    twice gives two different digests; verify() accepts both.
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest. Never raises."""
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def burn(self, plain: str) -> None:
        """Spend one verify() worth of CPU against a throwaway digest.

        Login calls this when the email is unknown so the response takes as
        long as a wrong-password attempt and does not reveal which emails
        are registered.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("ntcbus_timing_dummy")
        self.verify(plain, self._dummy_hash)
