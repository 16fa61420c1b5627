"""
auth/errors.py -- Exception taxonomy for authentication and authorization.

Every class carries a stable machine-readable ``code`` and the HTTP status the
API layer should answer with. auth/ never imports fastapi for this: api/main.py
owns the single exception handler that renders IdentityError into the error
envelope.

TokenInvalid is one externally visible category. The internal reason
(TokenFailure) is kept on the exception for logs and tests but is never put in
a response body.
"""

from __future__ import annotations

from enum import Enum


class IdentityError(Exception):
    """Base class for every rejection raised by the identity core."""

    status_code: int = 400
    code: str = "identity_error"
    default_message: str = "Request rejected."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(IdentityError):
    """Bad credentials. Never says whether the username exists."""

    status_code = 401
    code = "bad_credentials"
    default_message = "Invalid username or password."


class RegistrationConflict(IdentityError):
    status_code = 409
    code = "conflict"
    default_message = "Username or email already exists."


class PrivilegeEscalationRejected(IdentityError):
    status_code = 403
    code = "privilege_escalation"
    default_message = "The requested role cannot be self-assigned."


class TokenFailure(str, Enum):
    """Why a token failed validation. Internal diagnostics only."""

    SIGNATURE = "signature"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    REVOKED = "revoked"


class TokenInvalid(IdentityError):
    status_code = 401
    code = "token_invalid"
    default_message = "Invalid or expired token."

    def __init__(self, reason: TokenFailure, message: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class AuthorizationDenied(IdentityError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions for this operation."


class UnrecognizedRole(IdentityError):
    """A verified token names a role the system does not know."""

    status_code = 403
    code = "unrecognized_role"
    default_message = "Unrecognized role."

    def __init__(self, role_claim: object) -> None:
        super().__init__(f"Unrecognized role: {role_claim!r}")
        self.role_claim = role_claim


class UserNotFound(IdentityError):
    status_code = 404
    code = "not_found"
    default_message = "User not found."


class KeyConfigurationError(Exception):
    """Signing key material is missing, malformed, or inconsistent.

    Deliberately not an IdentityError: this is a fatal startup condition, not a
    per-request rejection.
    """
