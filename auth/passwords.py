"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage has no compatibility shim
and is actively maintained.

bcrypt only looks at the first 72 bytes of its input, and current releases
refuse longer inputs outright. hash() raises ValueError for them; the API layer
rejects them earlier with a 422.

Timing equalization [C1]: verify_dummy() burns the same bcrypt work as a real
check. AuthenticationService calls it when the username does not exist, so
response time does not reveal which usernames are registered.
"""

from __future__ import annotations

from typing import Protocol

import bcrypt

MAX_PASSWORD_BYTES = 72


class PasswordHasher(Protocol):
    def hash(self, plain: str) -> str: ...

    def verify(self, hashed: str, plain: str) -> bool: ...

    def verify_dummy(self, plain: str) -> None: ...


class BcryptPasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds
        # Computed once so the first unknown-user login is not measurably
        # slower than the following ones.
        self._dummy_hash = self.hash("campusauth_timing_dummy")

    def hash(self, plain: str) -> str:
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, hashed: str, plain: str) -> bool:
        """Return True if plain matches hashed. Malformed hashes never match."""
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        self.verify(self._dummy_hash, plain)
