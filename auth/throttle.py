"""
auth/throttle.py -- Failed-login counter per source address.

Policy: at most 5 failed login attempts per source address in a fixed
10-minute window. Successful logins are never counted, so a user who types
their password correctly is not locked out by earlier typos.

slowapi's @limiter.limit() counts every request, including successes, so the
throttle talks to the `limits` library (slowapi's own counter backend)
directly.

acquire() takes a slot with a single hit() before the credential check, so
concurrent attempts from one source cannot all slip past the limit between a
check and a later count. A successful login hands its slot back with
release(); failures keep theirs.

One LoginThrottle instance lives on the AppContext so every request shares
the same counters. The memory storage serializes increments internally.
"""

from __future__ import annotations

import math
import time

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

LOGIN_LIMIT = "5/10 minutes"
LOGIN_LIMIT_MESSAGE = "Too many login attempts. Please try again in 10 minutes"

_NAMESPACE = "login"


class LoginThrottle:
    def __init__(self, limit: str = LOGIN_LIMIT, storage_uri: str = "memory://") -> None:
        self._limit = parse(limit)
        self._storage = storage_from_string(storage_uri)
        self._limiter = FixedWindowRateLimiter(self._storage)

    def allowed(self, source: str) -> bool:
        """True if source has failures left in the current window. Does not count."""
        return self._limiter.test(self._limit, _NAMESPACE, source)

    def acquire(self, source: str) -> bool:
        """Count one attempt for source. False if it is over the limit."""
        return self._limiter.hit(self._limit, _NAMESPACE, source)

    def release(self, source: str) -> None:
        """Return a slot taken by acquire() for an attempt that succeeded."""
        self._storage.decr(self._limit.key_for(_NAMESPACE, source))

    def retry_after(self, source: str) -> int:
        """Seconds until the current window for source resets (at least 1)."""
        stats = self._limiter.get_window_stats(self._limit, _NAMESPACE, source)
        return max(1, math.ceil(stats.reset_time - time.time()))

    def reset(self) -> None:
        self._storage.reset()
