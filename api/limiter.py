"""
api/limiter.py -- Shared slowapi rate limiter for credential endpoints.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies
@limiter.limit(LOGIN_RATE_LIMIT) to login. One shared instance means every
route counts against the same in-memory store -- separate instances would
each keep their own counters and never trip.

Counters are per client IP and per process, like the revocation registry.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

LOGIN_RATE_LIMIT = get_settings().login_rate_limit

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
