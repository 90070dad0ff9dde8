"""
auth/ratelimit.py -- Default per-(ip, endpoint) attempt limiter for the auth flows.

Built on `limits`, the library underneath slowapi. slowapi (api/limiter.py)
throttles raw request volume per route; this limiter is narrower: it counts
attempts at the credential-bearing operations (login, code verification,
registration) per client IP and endpoint, and locks the pair out once
max_attempts is reached within the window.

Pattern: moving window + lockout. Every allowed call counts as an attempt,
successful or not. Once max_attempts calls fall inside window_seconds the
next call starts a lockout of lockout_seconds; every call during the lockout
is rejected with retry_after set to the time left. When the lockout ends the
attempt history starts empty.

With the defaults (5 attempts, 15 minute window, 15 minute lockout) the
sixth attempt inside any 15 minute span is rejected and the pair stays
blocked for 15 minutes.

Storage: "memory://" keeps counters in-process. Pass a redis:// or
memcached:// URI (any storage `limits` supports) to share counters between
workers.
"""

from __future__ import annotations

import math
import time

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from auth.ports import RateLimitDecision

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_LOCKOUT_SECONDS = 15 * 60

MSG_TOO_MANY_REQUESTS = "Too many requests. Please try again later."


class AttemptRateLimiter:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        lockout_seconds: int = DEFAULT_LOCKOUT_SECONDS,
        storage_uri: str = "memory://",
    ) -> None:
        # Zero means "use the default", matching how unset config values behave.
        self.max_attempts = max_attempts if max_attempts > 0 else DEFAULT_MAX_ATTEMPTS
        self.window_seconds = window_seconds if window_seconds > 0 else DEFAULT_WINDOW_SECONDS
        self.lockout_seconds = lockout_seconds if lockout_seconds > 0 else DEFAULT_LOCKOUT_SECONDS
        self._item = RateLimitItemPerSecond(self.max_attempts, self.window_seconds)
        self._storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

    def check(self, ip: str, endpoint: str) -> RateLimitDecision:
        key = f"{ip}:{endpoint}"
        lockout_key = f"gatehouse-lockout/{key}"

        if self._storage.get(lockout_key):
            retry_after = max(1, math.ceil(self._storage.get_expiry(lockout_key) - time.time()))
            return RateLimitDecision(allowed=False, retry_after=retry_after)

        if self._strategy.hit(self._item, key):
            return RateLimitDecision(allowed=True)

        self._storage.incr(lockout_key, self.lockout_seconds)
        self._strategy.clear(self._item, key)
        return RateLimitDecision(allowed=False, retry_after=self.lockout_seconds)

    def reset(self) -> None:
        """Clear all counters and lockouts."""
        self._storage.reset()
