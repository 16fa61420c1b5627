"""
auth/revocation.py -- Registry of bearer tokens invalidated before expiry.

The registry is keyed by the token's ``jti`` claim and remembers the token's
natural expiry alongside it. It is injected into TokenService rather than held
as a module-level global, so each service instance (and each test) owns its own.

Concurrency contract:
  - is_revoked() is a plain dict membership test. It takes no lock and is O(1).
  - revoke_if_absent() and prune() serialize on an internal lock. Callers never
    lock anything themselves.
  - revoke_if_absent() is an atomic add-if-absent. It returns True only for the
    caller that actually inserted the id. TokenService.refresh() relies on this
    to guarantee a token is rotated at most once.

Pruning:
  An entry whose expiry has passed can be dropped, because TokenService
  rejects an expired token before it consults the registry. prune() does exactly
  that and is run periodically by the API lifespan. Use the same clock here as
  the TokenService that consults the registry.

Limitation: the registry is process-local and lost on restart. A token revoked
on one replica stays valid on another until it expires naturally.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger("campusauth.auth.revocation")


class RevocationRegistry(Protocol):
    def revoke_if_absent(self, token_id: str, expires_at: float) -> bool: ...

    def is_revoked(self, token_id: str) -> bool: ...

    def prune(self, now: float | None = None) -> int: ...


class InMemoryRevocationRegistry:
    """Thread-safe in-process revocation registry with expiry-based pruning."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def revoke_if_absent(self, token_id: str, expires_at: float) -> bool:
        with self._lock:
            if token_id in self._entries:
                return False
            self._entries[token_id] = expires_at
            return True

    def is_revoked(self, token_id: str) -> bool:
        return token_id in self._entries

    def prune(self, now: float | None = None) -> int:
        """Drop entries whose token has already expired. Returns the count removed."""
        cutoff = self._clock() if now is None else now
        with self._lock:
            expired = [token_id for token_id, expires_at in self._entries.items() if expires_at <= cutoff]
            for token_id in expired:
                del self._entries[token_id]
        if expired:
            logger.debug("Pruned %d expired revocation entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
