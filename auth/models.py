"""
auth/models.py -- Domain dataclasses for identity and access control.

Pattern: Data class (pure data containers, minimal logic). Stores and services
do the work; these types only carry shape.

Two families live here:
  - Persisted shape: User (owned by auth/store.py) and Registration (the
    candidate handed to AuthenticationService.register()).
  - Ephemeral, per-request shape: TokenClaims, Principal, IssuedToken, and the
    two result variants TokenCheck / AccessDecision. Result variants make the
    rejection path an explicit return value -- callers read .ok / .allowed or
    call .unwrap() to opt into an exception.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from auth.errors import IdentityError, TokenFailure, TokenInvalid
from auth.roles import Role


@dataclass
class User:
    """A principal record as stored by the user directory.

    password_hash is the bcrypt hash; the plaintext never reaches this type.
    id is assigned by the store on insert.
    """

    username: str
    email: str
    role: Role
    name: str = ""
    surname: str = ""
    password_hash: str | None = field(default=None, repr=False)
    id: str | None = None
    created_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class Registration:
    """Candidate account submitted for registration.

    role is the *requested* role; None means the default role. A raw role
    identifier string is accepted and normalized by the service. password is
    plaintext and is excluded from repr so it never lands in a log line.
    """

    username: str
    email: str
    password: str = field(repr=False)
    name: str = ""
    surname: str = ""
    role: Role | str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, derived only from a verified token."""

    user_id: str
    username: str
    role: Role


@dataclass(frozen=True)
class TokenClaims:
    """Claims of a signature-verified token.

    role is the raw claim string. It stays a string here because the token
    may outlive a role's existence; principal() performs the runtime check.
    """

    user_id: str
    username: str
    role: str
    issued_at: int
    expires_at: int
    token_id: str

    def principal(self) -> Principal:
        """Return the Principal for these claims. Raises UnrecognizedRole."""
        return Principal(user_id=self.user_id, username=self.username, role=Role.from_claim(self.role))


@dataclass(frozen=True)
class IssuedToken:
    """A minted bearer token plus the metadata returned to the client."""

    access_token: str = field(repr=False)
    expires_in: int
    token_type: str = "Bearer"


@dataclass(frozen=True)
class TokenCheck:
    """Outcome of TokenService.validate_and_extract().

    Exactly one of claims / failure is set.
    """

    claims: TokenClaims | None = None
    failure: TokenFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.claims is not None

    def unwrap(self) -> TokenClaims:
        if not self.ok:
            raise TokenInvalid(self.failure or TokenFailure.MALFORMED)
        return self.claims


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an AuthorizationEngine check.

    allowed  -> principal is set.
    rejected -> error holds the IdentityError describing why (TokenInvalid,
                UnrecognizedRole, or AuthorizationDenied).
    """

    principal: Principal | None = None
    error: IdentityError | None = None

    @classmethod
    def allow(cls, principal: Principal) -> AccessDecision:
        return cls(principal=principal)

    @classmethod
    def deny(cls, error: IdentityError) -> AccessDecision:
        return cls(error=error)

    @property
    def allowed(self) -> bool:
        return self.error is None and self.principal is not None

    def unwrap(self) -> Principal:
        """Return the principal, or raise the carried rejection."""
        if self.error is not None:
            raise self.error
        if self.principal is None:
            raise IdentityError("Empty access decision.")
        return self.principal
