"""
auth/tokens.py -- RS256 bearer token issuance, validation, revocation, refresh.

Security design decisions:
  Signing: python-jose with RS256. The private key signs, the public key
       verifies, so a verifier never needs the signing secret. Tokens carry
       sub (user id), username, role, iat, exp and a random jti.

  jti: a per-token random id. It is what the revocation registry stores, and it
       makes two tokens for the same principal distinct even when minted in
       the same second.

  Validation order [T1]: (1) signature, (2) expiry, (3) revocation. The first
       failure wins and no claim is read before the signature verifies. jose's
       own exp check is disabled because it accepts now == exp; here a token
       is valid only while now < exp, measured with the injected clock.

  Refresh rotation [T2]: the old jti is revoked through the registry's atomic
       revoke_if_absent() *before* the new token is minted. Of two concurrent
       refreshes of one token exactly one wins; once refresh() returns, the
       old token can never validate again.

  Fail closed: every failure path yields an invalid result. Revoking an
       unverifiable token is a no-op rather than an error (logout is idempotent).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from jose import JWTError, jwt

from auth.errors import TokenFailure, TokenInvalid
from auth.keys import KeyProvider
from auth.models import IssuedToken, TokenCheck, TokenClaims
from auth.revocation import InMemoryRevocationRegistry, RevocationRegistry
from auth.roles import Role
from core.config import Settings

logger = logging.getLogger("campusauth.auth.tokens")

ALGORITHM = "RS256"
BEARER_SCHEME = "bearer"


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    The scheme name is case-insensitive (RFC 7235). Returns None when the header
    is missing, uses another scheme, or carries an empty token.
    """
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    token = token.strip()
    return token or None


def _short(token_id: str) -> str:
    return token_id[:8]


class TokenService:
    """Owns the signing keypair, the token lifetime, and the revocation registry."""

    def __init__(
        self,
        keys: KeyProvider,
        lifetime_seconds: int,
        registry: RevocationRegistry | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if lifetime_seconds <= 0:
            raise ValueError("Token lifetime must be positive.")
        self._keys = keys
        self._lifetime = lifetime_seconds
        self._clock = clock
        self._registry = registry if registry is not None else InMemoryRevocationRegistry(clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings, registry: RevocationRegistry | None = None) -> TokenService:
        return cls(KeyProvider.from_settings(settings), settings.token_expire_seconds, registry=registry)

    @property
    def keys(self) -> KeyProvider:
        return self._keys

    @property
    def lifetime_seconds(self) -> int:
        return self._lifetime

    @property
    def registry(self) -> RevocationRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user_id: str, username: str, role: Role | str) -> IssuedToken:
        """Mint a signed token for (user_id, username, role) valid for the configured lifetime."""
        now = int(self._clock())
        payload = {
            "sub": str(user_id),
            "username": username,
            "role": role.value if isinstance(role, Role) else str(role),
            "iat": now,
            "exp": now + self._lifetime,
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self._keys.get().private_pem, algorithm=ALGORITHM)
        logger.debug("Issued token jti=%s for user_id=%s", _short(payload["jti"]), user_id)
        return IssuedToken(access_token=token, expires_in=self._lifetime)

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def _verified_claims(self, token: object) -> TokenClaims | TokenFailure:
        """Verify the signature, then read claims. Never trusts an unverified payload."""
        if not isinstance(token, str) or not token:
            return TokenFailure.SIGNATURE
        try:
            payload = jwt.decode(
                token,
                self._keys.get().public_pem,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError:
            return TokenFailure.SIGNATURE
        claims = _claims_from_payload(payload)
        return claims if claims is not None else TokenFailure.MALFORMED

    def validate_and_extract(self, token: object) -> TokenCheck:
        """Run the ordered checks [T1] and return claims or the failure reason."""
        verified = self._verified_claims(token)
        if isinstance(verified, TokenFailure):
            return TokenCheck(failure=verified)
        if self._clock() >= verified.expires_at:
            return TokenCheck(failure=TokenFailure.EXPIRED)
        if self._registry.is_revoked(verified.token_id):
            return TokenCheck(failure=TokenFailure.REVOKED)
        return TokenCheck(claims=verified)

    def validate(self, token: object) -> bool:
        return self.validate_and_extract(token).ok

    def extract_claims(self, token: object) -> TokenClaims:
        """Return verified claims. Raises TokenInvalid if the token does not validate."""
        return self.validate_and_extract(token).unwrap()

    def token_info(self, token: str) -> IssuedToken:
        """Echo a token with its remaining lifetime in seconds (0 when invalid)."""
        check = self.validate_and_extract(token)
        remaining = 0
        if check.ok:
            remaining = max(0, int(check.claims.expires_at - self._clock()))
        return IssuedToken(access_token=token, expires_in=remaining)

    # ------------------------------------------------------------------
    # Revoke / refresh
    # ------------------------------------------------------------------

    def revoke(self, token: object) -> None:
        """Invalidate a token for the rest of its natural lifetime. Idempotent."""
        verified = self._verified_claims(token)
        if isinstance(verified, TokenFailure):
            logger.debug("Ignoring revoke of unverifiable token (%s)", verified.value)
            return
        if self._clock() >= verified.expires_at:
            return
        if self._registry.revoke_if_absent(verified.token_id, verified.expires_at):
            logger.info("Revoked token jti=%s for user_id=%s", _short(verified.token_id), verified.user_id)

    def refresh(self, token: object) -> IssuedToken:
        """Rotate a valid token [T2]: revoke it, then mint a replacement with the same identity."""
        check = self.validate_and_extract(token)
        if not check.ok:
            logger.info("Refresh rejected (%s)", check.failure.value if check.failure else "unknown")
            raise TokenInvalid(check.failure or TokenFailure.MALFORMED, "Cannot refresh an invalid token.")
        claims = check.claims
        if not self._registry.revoke_if_absent(claims.token_id, claims.expires_at):
            # A concurrent refresh or logout got there first.
            logger.info("Refresh lost rotation race for jti=%s", _short(claims.token_id))
            raise TokenInvalid(TokenFailure.REVOKED, "Cannot refresh an invalid token.")
        logger.info("Rotated token jti=%s for user_id=%s", _short(claims.token_id), claims.user_id)
        return self.issue(claims.user_id, claims.username, claims.role)


def _claims_from_payload(payload: dict[str, Any]) -> TokenClaims | None:
    """Map a verified JWT payload to TokenClaims, or None if a claim is missing or mistyped."""
    sub = payload.get("sub")
    username = payload.get("username")
    role = payload.get("role")
    iat = payload.get("iat")
    exp = payload.get("exp")
    jti = payload.get("jti")
    if not all(isinstance(v, str) and v for v in (sub, username, role, jti)):
        return None
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (iat, exp)):
        return None
    return TokenClaims(user_id=sub, username=username, role=role, issued_at=iat, expires_at=exp, token_id=jti)
