"""
API request and response models for CampusAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import IssuedToken, Principal, User
from auth.passwords import MAX_PASSWORD_BYTES
from auth.roles import Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_password_bytes(value: str) -> str:
    """bcrypt refuses inputs over 72 bytes; reject them here as a 422."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded.")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register and POST /api/v1/users.

    role is optional; omitted means STUDENT. Requesting SUPER_ADMIN passes
    validation here and is rejected by the service with 403.
    No whitespace stripping: it would silently alter the password.
    """

    username: str = Field(min_length=3, max_length=64, pattern=USERNAME_PATTERN)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    name: str = Field(default="", max_length=100)
    surname: str = Field(default="", max_length=100)
    role: Optional[Role] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=255)

    @field_validator("new_password")
    @classmethod
    def new_password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfilePatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=100)
    surname: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)


class RoleAssignment(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Bearer token plus metadata. expires_in is in seconds."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int

    @classmethod
    def from_issued(cls, issued: IssuedToken) -> "TokenResponse":
        return cls(access_token=issued.access_token, token_type=issued.token_type, expires_in=issued.expires_in)


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    role: Role

    @classmethod
    def from_principal(cls, principal: Principal) -> "MeResponse":
        return cls(user_id=principal.user_id, username=principal.username, role=principal.role)


class UserResponse(BaseModel):
    """Public view of a user record. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    name: str
    surname: str
    role: Role
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            surname=user.surname,
            role=user.role,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class RoleInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    level: int
    description: str

    @classmethod
    def from_role(cls, role: Role) -> "RoleInfo":
        return cls(id=role.value, name=role.display_name, level=role.rank, description=role.description)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
