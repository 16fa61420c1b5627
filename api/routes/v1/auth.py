"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register         -- self-registration (public, can be disabled)
  POST /api/v1/auth/login            -- password login; returns a bearer token
  POST /api/v1/auth/logout           -- revokes the presented token
  POST /api/v1/auth/refresh          -- rotates the presented token
  GET  /api/v1/auth/me               -- identity carried by the token
  GET  /api/v1/auth/token-info       -- remaining lifetime of the token
  POST /api/v1/auth/change-password  -- change own password

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] Login goes through AuthenticationService.login(), which equalizes
       timing. Do NOT inline get_by_username() + verify() here.
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from auth.dependencies import get_bearer_token, get_current_principal
from auth.models import IssuedToken, Principal, Registration
from auth.service import AuthenticationService
from auth.tokens import TokenService

# Auth policy:
# - POST /auth/register:        public -- gated by SELF_REGISTRATION_ENABLED
# - POST /auth/login:           public -- rate-limited
# - POST /auth/logout:          bearer token required (may already be invalid)
# - POST /auth/refresh:         bearer token required
# - GET  /auth/me:              valid token (get_current_principal)
# - GET  /auth/token-info:      bearer token required
# - POST /auth/change-password: valid token
router = APIRouter()


def _service(request: Request) -> AuthenticationService:
    return request.app.state.auth_service


def _token_response(issued: IssuedToken) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=TokenResponse.from_issued(issued).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. SUPER_ADMIN can never be requested here (403)."""
    if not request.app.state.settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    user = _service(request).register(
        Registration(
            username=body.username,
            email=body.email,
            password=body.password,
            name=body.name,
            surname=body.surname,
            role=body.role,
        )
    )
    return UserResponse.from_user(user)


@limiter.limit(LOGIN_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and return a bearer token.

    Wrong username and wrong password produce the same 401 (bad_credentials).
    """
    issued = _service(request).login(body.username, body.password)
    return _token_response(issued)


# ---------------------------------------------------------------------------
# Token-bearing endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, token: str = Depends(get_bearer_token)) -> MessageResponse:
    """Revoke the presented token. Idempotent: an already dead token still gets 200."""
    _service(request).logout(token)
    return MessageResponse(message="Logged out.")


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, token: str = Depends(get_bearer_token)) -> JSONResponse:
    """Exchange a valid token for a new one. The presented token stops working."""
    return _token_response(_service(request).refresh(token))


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    return MeResponse.from_principal(principal)


@router.get("/auth/token-info", response_model=TokenResponse)
def token_info(request: Request, token: str = Depends(get_bearer_token)) -> JSONResponse:
    """Return the presented token with its remaining lifetime (0 if no longer valid)."""
    tokens: TokenService = request.app.state.token_service
    return _token_response(tokens.token_info(token))


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    token: str = Depends(get_bearer_token),
) -> MessageResponse:
    _service(request).change_password(token, body.current_password, body.new_password)
    return MessageResponse(message="Password changed.")
