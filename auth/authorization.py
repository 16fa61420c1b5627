"""
auth/authorization.py -- Role-hierarchy and resource-ownership checks.

Every check returns an AccessDecision instead of raising, so a rejection is a
value the caller must look at. Route dependencies call .unwrap() to turn it
into an exception at the HTTP edge.

is_owner_or_privileged() is the one ownership rule for self-scoped resources
(a user's own profile, a teacher's own survey, ...). Resource accessors call it
(or check_owner_or_privileged()) rather than comparing ids themselves.
"""

from __future__ import annotations

import logging

from auth.errors import AuthorizationDenied, TokenInvalid, UnrecognizedRole
from auth.models import AccessDecision, Principal
from auth.roles import Role
from auth.tokens import TokenService

logger = logging.getLogger("campusauth.auth.authorization")


class AuthorizationEngine:
    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens

    @staticmethod
    def has_minimum_level(actual: Role, required: Role) -> bool:
        return actual.rank >= required.rank

    @staticmethod
    def is_owner_or_privileged(principal: Principal, resource_owner_id: object, bypass_role: Role) -> bool:
        """True if the principal outranks bypass_role or owns the resource."""
        if principal.role.rank >= bypass_role.rank:
            return True
        return resource_owner_id is not None and principal.user_id == str(resource_owner_id)

    def authenticate(self, token: object) -> AccessDecision:
        """Validate the token and map its role claim to a known Role."""
        check = self._tokens.validate_and_extract(token)
        if not check.ok:
            return AccessDecision.deny(TokenInvalid(check.failure))
        try:
            principal = check.claims.principal()
        except UnrecognizedRole as exc:
            logger.warning("Token for user_id=%s carries unrecognized role %r", check.claims.user_id, exc.role_claim)
            return AccessDecision.deny(exc)
        return AccessDecision.allow(principal)

    def authorize(self, principal: Principal, required: Role) -> AccessDecision:
        if self.has_minimum_level(principal.role, required):
            return AccessDecision.allow(principal)
        logger.info(
            "Denied user_id=%s: requires %s, has %s", principal.user_id, required.value, principal.role.value
        )
        return AccessDecision.deny(
            AuthorizationDenied(
                f"Insufficient permissions. Required: {required.value}, held: {principal.role.value}."
            )
        )

    def check_role(self, token: object, required: Role) -> AccessDecision:
        """Validate the token, then require at least the given role."""
        decision = self.authenticate(token)
        if not decision.allowed:
            return decision
        return self.authorize(decision.principal, required)

    def check_owner_or_privileged(
        self, principal: Principal, resource_owner_id: object, bypass_role: Role
    ) -> AccessDecision:
        if self.is_owner_or_privileged(principal, resource_owner_id, bypass_role):
            return AccessDecision.allow(principal)
        logger.info("Denied user_id=%s access to resource owned by %s", principal.user_id, resource_owner_id)
        return AccessDecision.deny(AuthorizationDenied("You can only access your own resources."))
