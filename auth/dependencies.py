"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only accepted credential is an ``Authorization: Bearer <token>`` header.

get_bearer_token() returns the raw token or raises HTTP 401 if none is sent.
get_current_principal() validates it through the AuthorizationEngine.
require_role(role) builds a dependency that also enforces a minimum role.

Rejections from the engine are raised as IdentityError subclasses; api/main.py
renders them into the standard error envelope (401 for TokenInvalid, 403 for
AuthorizationDenied / UnrecognizedRole).

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.authorization import AuthorizationEngine
from auth.models import Principal
from auth.roles import Role
from auth.tokens import extract_bearer_token


def get_bearer_token(request: Request) -> str:
    """Require an Authorization: Bearer header. Raises HTTP 401 if missing."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_current_principal(request: Request) -> Principal:
    """Require a valid token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    engine: AuthorizationEngine = request.app.state.authz
    return engine.authenticate(get_bearer_token(request)).unwrap()


def require_role(required: Role) -> Callable[[Request], Principal]:
    """Build a dependency that requires at least ``required``.

        @router.get("/admin-only")
        async def route(principal: Principal = Depends(require_role(Role.ADMIN))): ...
    """

    def _dependency(request: Request) -> Principal:
        engine: AuthorizationEngine = request.app.state.authz
        return engine.check_role(get_bearer_token(request), required).unwrap()

    _dependency.__name__ = f"require_{required.value.lower()}"
    return _dependency
