"""
auth/roles.py -- The closed, ranked set of platform roles.

Role is a plain Enum (no str mixin) on purpose: a str-mixin enum would inherit
lexicographic ``<`` from str. Ordering is defined by rank only, so
``Role.TEACHER > Role.STUDENT`` is a numeric comparison.

Role.from_claim() is the only place a raw role string becomes a Role. Use it for
input that crosses the trust boundary (token claims); it raises UnrecognizedRole
instead of guessing.
"""

from __future__ import annotations

from enum import Enum

from auth.errors import UnrecognizedRole


class Role(Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    def has_minimum_level(self, required: Role) -> bool:
        return self.rank >= required.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_claim(cls, value: object) -> Role:
        """Map a role identifier from outside the trust boundary to a Role.

        Matching is case-insensitive. Anything that is not a known identifier
        (including non-strings) raises UnrecognizedRole.
        """
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is not None:
                return member
        raise UnrecognizedRole(value)


_RANKS: dict[Role, int] = {
    Role.STUDENT: 0,
    Role.TEACHER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}

_DISPLAY_NAMES: dict[Role, str] = {
    Role.STUDENT: "Student",
    Role.TEACHER: "Teacher",
    Role.ADMIN: "Administrator",
    Role.SUPER_ADMIN: "Super Administrator",
}

_DESCRIPTIONS: dict[Role, str] = {
    Role.STUDENT: "Base role reserved for students.",
    Role.TEACHER: "Additional permissions for teaching staff.",
    Role.ADMIN: "Administrator with user management privileges.",
    Role.SUPER_ADMIN: "System administrator with every privilege.",
}

# Top privilege. Only the CLI bootstrap may create it; never self-registration.
BOOTSTRAP_ROLE = Role.SUPER_ADMIN

DEFAULT_ROLE = Role.STUDENT
