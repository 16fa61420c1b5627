"""
auth/service.py -- Registration, login, logout, and account administration.

AuthenticationService orchestrates the user directory, the password hasher,
the token service and the event publisher. It holds no state of its own.

Security:
  [C1] login() runs bcrypt whether or not the username exists and raises the
       same AuthenticationError for an unknown user and a wrong password.
  [R1] Nobody can register themselves, be created by an admin, or be assigned
       the bootstrap role. Requested roles are normalized through
       Role.from_claim() first, so a raw "SUPER_ADMIN" string is caught too.
       The check runs before any directory write or event.
  Self-scoped reads and writes (get_user, update_profile) go through
       AuthorizationEngine.check_owner_or_privileged() and nothing else.

Events are best effort: a publisher failure is logged and never undoes or
fails the operation that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError

from auth.authorization import AuthorizationEngine
from auth.errors import (
    AuthenticationError,
    AuthorizationDenied,
    PrivilegeEscalationRejected,
    RegistrationConflict,
    UserNotFound,
)
from auth.events import (
    ROLE_ASSIGNED,
    USER_CREATED,
    USER_DELETED,
    USER_UPDATED,
    EventPublisher,
    LoggingEventPublisher,
)
from auth.models import IssuedToken, Principal, Registration, User
from auth.passwords import PasswordHasher
from auth.roles import BOOTSTRAP_ROLE, DEFAULT_ROLE, Role
from auth.tokens import TokenService

logger = logging.getLogger("campusauth.auth.service")


class UserDirectory(Protocol):
    """The subset of UserStore the service depends on."""

    def create_user(self, user: User) -> str: ...

    def update_user(self, user_id: str, **fields) -> bool: ...

    def delete_user(self, user_id: str) -> bool: ...

    def update_last_login(self, user_id: str) -> None: ...

    def get_by_username(self, username: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def exists_by_username(self, username: str) -> bool: ...

    def exists_by_email(self, email: str) -> bool: ...

    def count_by_role(self, role: Role) -> int: ...


def _user_payload(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "name": user.name,
        "surname": user.surname,
        "role": {"id": user.role.value, "name": user.role.display_name},
        "created_at": user.created_at,
    }


def _grantable_role(candidate: Registration) -> Role:
    """Resolve the requested role, refusing the bootstrap role [R1]."""
    role = DEFAULT_ROLE if candidate.role is None else Role.from_claim(candidate.role)
    if role is BOOTSTRAP_ROLE:
        logger.warning("Rejected request for %s by username=%s", role.value, candidate.username)
        raise PrivilegeEscalationRejected()
    return role


class AuthenticationService:
    def __init__(
        self,
        users: UserDirectory,
        hasher: PasswordHasher,
        tokens: TokenService,
        events: EventPublisher | None = None,
        authz: AuthorizationEngine | None = None,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._tokens = tokens
        self._events = events if events is not None else LoggingEventPublisher()
        self._authz = authz if authz is not None else AuthorizationEngine(tokens)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, candidate: Registration) -> User:
        """Create a new account with the requested (or default) role.

        Raises PrivilegeEscalationRejected for the bootstrap role [R1] and
        RegistrationConflict for a taken username or email.
        """
        role = _grantable_role(candidate)
        return self._create(candidate, role)

    def create_user(self, actor_token: str, candidate: Registration) -> User:
        """Create an account on someone else's behalf. ADMIN and above only.

        The same role rules as register() apply: default STUDENT, never the
        bootstrap role.
        """
        actor = self._authz.check_role(actor_token, Role.ADMIN).unwrap()
        role = _grantable_role(candidate)
        user = self._create(candidate, role)
        logger.info("user_id=%s created user_id=%s", actor.user_id, user.id)
        return user

    def bootstrap_super_admin(self, candidate: Registration) -> User:
        """Create the single bootstrap account. CLI only; never exposed over HTTP."""
        if self._users.count_by_role(BOOTSTRAP_ROLE) > 0:
            raise RegistrationConflict(f"A {BOOTSTRAP_ROLE.display_name} already exists.")
        return self._create(candidate, BOOTSTRAP_ROLE)

    def _create(self, candidate: Registration, role: Role) -> User:
        if self._users.exists_by_username(candidate.username):
            raise RegistrationConflict("Username already exists.")
        if self._users.exists_by_email(candidate.email):
            raise RegistrationConflict("Email already exists.")
        user = User(
            username=candidate.username,
            email=candidate.email,
            name=candidate.name,
            surname=candidate.surname,
            role=role,
            password_hash=self._hasher.hash(candidate.password),
        )
        try:
            self._users.create_user(user)
        except IntegrityError:
            # Lost a race with a concurrent registration of the same username/email.
            raise RegistrationConflict() from None
        logger.info("Registered user_id=%s username=%s role=%s", user.id, user.username, role.value)
        self._publish(USER_CREATED, _user_payload(user))
        return user

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> IssuedToken:
        """Verify credentials and issue a token. Raises AuthenticationError [C1]."""
        user = self._users.get_by_username(username)
        if user is None or not user.password_hash:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            self._hasher.verify_dummy(password)
            raise AuthenticationError()
        if not self._hasher.verify(user.password_hash, password):
            logger.info("Failed login for user_id=%s", user.id)
            raise AuthenticationError()
        self._users.update_last_login(user.id)
        logger.info("Successful login for user_id=%s", user.id)
        return self._tokens.issue(user.id, user.username, user.role)

    def logout(self, token: str) -> None:
        """Revoke the token. Unknown or already revoked tokens are not an error."""
        self._tokens.revoke(token)

    def refresh(self, token: str) -> IssuedToken:
        return self._tokens.refresh(token)

    def current_principal(self, token: str) -> Principal:
        return self._authz.authenticate(token).unwrap()

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    def change_password(self, token: str, current_password: str, new_password: str) -> None:
        principal = self.current_principal(token)
        user = self._users.get_by_id(principal.user_id)
        if user is None or not user.password_hash:
            self._hasher.verify_dummy(current_password)
            raise AuthenticationError()
        if not self._hasher.verify(user.password_hash, current_password):
            raise AuthenticationError("Current password is incorrect.")
        self._users.update_user(user.id, password_hash=self._hasher.hash(new_password))
        logger.info("Password changed for user_id=%s", user.id)

    def assign_role(self, actor_token: str, user_id: str, role: Role | str) -> bool:
        """Give a user a new role. Returns False if the user already has it.

        The actor needs at least ADMIN, cannot hand out the bootstrap role,
        and cannot change the role of someone who outranks them.
        """
        actor = self._authz.check_role(actor_token, Role.ADMIN).unwrap()
        role = Role.from_claim(role)
        if role is BOOTSTRAP_ROLE:
            raise PrivilegeEscalationRejected()
        user = self._require_user(user_id)
        if user.role > actor.role:
            raise AuthorizationDenied("Cannot change the role of a higher-ranked user.")
        if user.role is role:
            return False
        self._users.update_user(user.id, role=role)
        logger.info("user_id=%s assigned role %s to user_id=%s", actor.user_id, role.value, user.id)
        self._publish(ROLE_ASSIGNED, {"user_id": user.id, "role_id": role.value})
        return True

    def delete_user(self, actor_token: str, user_id: str) -> None:
        """Delete an account. ADMIN and above; never yourself, never a higher rank."""
        actor = self._authz.check_role(actor_token, Role.ADMIN).unwrap()
        if actor.user_id == user_id:
            raise AuthorizationDenied("Cannot delete your own account.")
        user = self._require_user(user_id)
        if user.role > actor.role:
            raise AuthorizationDenied("Cannot delete a higher-ranked user.")
        if not self._users.delete_user(user.id):
            raise UserNotFound()
        logger.info("user_id=%s deleted user_id=%s", actor.user_id, user.id)
        self._publish(USER_DELETED, {"user_id": user.id})

    def get_user(self, principal: Principal, user_id: str) -> User:
        """Fetch a user record visible to its owner or to ADMIN and above."""
        self._authz.check_owner_or_privileged(principal, user_id, Role.ADMIN).unwrap()
        return self._require_user(user_id)

    def update_profile(
        self,
        principal: Principal,
        user_id: str,
        *,
        name: str | None = None,
        surname: str | None = None,
        email: str | None = None,
    ) -> User:
        """Change profile fields of a user owned by the caller (or as ADMIN and above)."""
        self._authz.check_owner_or_privileged(principal, user_id, Role.ADMIN).unwrap()
        user = self._require_user(user_id)
        changes: dict[str, str] = {}
        if name is not None:
            changes["name"] = name
        if surname is not None:
            changes["surname"] = surname
        if email is not None and email != user.email:
            # A case-only change keeps the same mailbox, which belongs to this user.
            if email.lower() != user.email.lower() and self._users.exists_by_email(email):
                raise RegistrationConflict("Email already exists.")
            changes["email"] = email
        if not changes:
            return user
        try:
            self._users.update_user(user.id, **changes)
        except IntegrityError:
            raise RegistrationConflict("Email already exists.") from None
        updated = self._require_user(user_id)
        self._publish(USER_UPDATED, _user_payload(updated))
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            self._events.publish(event_type, payload)
        except Exception:
            logger.warning("Failed to publish %s event", event_type, exc_info=True)
