"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

This is the coarse request-volume throttle. Attempt counting with lockout
for login and registration is auth.ratelimit.AttemptRateLimiter's job.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def request_rate_limit() -> str:
    """Limit string for auth routes, read at request time so tests can override it."""
    return get_settings().request_rate_limit
