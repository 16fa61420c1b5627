"""
api/routes/v1/users.py -- User directory and role endpoints.

Routes:
  GET  /api/v1/roles                 -- role catalogue (any valid token)
  GET  /api/v1/users                 -- list users (ADMIN)
  POST /api/v1/users                 -- create a user on someone's behalf (ADMIN)
  GET  /api/v1/users/{id}            -- one user (owner, or ADMIN and above)
  PATCH /api/v1/users/{id}           -- update name/surname/email (owner, or ADMIN and above)
  DELETE /api/v1/users/{id}          -- delete a user (ADMIN; not yourself, not a higher rank)
  PUT  /api/v1/users/{id}/role       -- assign a role (ADMIN; never SUPER_ADMIN)

Ownership is decided inside AuthenticationService through
AuthorizationEngine.check_owner_or_privileged(); no route compares ids itself.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import MessageResponse, ProfilePatch, RegisterRequest, RoleAssignment, RoleInfo, UserResponse
from auth.dependencies import get_bearer_token, get_current_principal, require_role
from auth.models import Principal, Registration
from auth.roles import Role
from auth.service import AuthenticationService
from auth.store import UserStore

router = APIRouter()


def _service(request: Request) -> AuthenticationService:
    return request.app.state.auth_service


@router.get("/roles", response_model=list[RoleInfo])
def list_roles(principal: Principal = Depends(get_current_principal)) -> list[RoleInfo]:
    """Return every role ordered by rank."""
    return [RoleInfo.from_role(role) for role in sorted(Role)]


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, principal: Principal = Depends(require_role(Role.ADMIN))) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: RegisterRequest,
    token: str = Depends(get_bearer_token),
) -> UserResponse:
    """Create an account as an administrator. Works even when self-registration is off."""
    user = _service(request).create_user(
        token,
        Registration(
            username=body.username,
            email=body.email,
            password=body.password,
            name=body.name,
            surname=body.surname,
            role=body.role,
        ),
    )
    return UserResponse.from_user(user)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str, principal: Principal = Depends(get_current_principal)) -> UserResponse:
    return UserResponse.from_user(_service(request).get_user(principal, user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: ProfilePatch,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    updated = _service(request).update_profile(
        principal,
        user_id,
        name=body.name,
        surname=body.surname,
        email=body.email,
    )
    return UserResponse.from_user(updated)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: str, token: str = Depends(get_bearer_token)) -> Response:
    _service(request).delete_user(token, user_id)
    return Response(status_code=204)


@router.put("/users/{user_id}/role", response_model=MessageResponse)
def assign_role(
    request: Request,
    user_id: str,
    body: RoleAssignment,
    token: str = Depends(get_bearer_token),
) -> MessageResponse:
    changed = _service(request).assign_role(token, user_id, body.role)
    return MessageResponse(message="Role assigned." if changed else "Role unchanged.")
