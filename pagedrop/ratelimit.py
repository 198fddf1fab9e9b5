"""Rate limiting per submitting user.

Each user gets a fixed window: the first submission opens it, up to
``max_requests`` submissions are allowed inside it, and the budget is
refilled when the window expires.
"""

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger("pagedrop.ratelimit")


@dataclass
class _Window:
    started: float
    count: int = 0


class RateLimiter:
    """Fixed-window rate limiter keyed by user id.

    Default: 5 submissions per 60 seconds per user.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: int = 60,
        exempt_users: Optional[Iterable[str]] = None,
    ):
        self.max_requests = max_requests
        self.window = window_seconds
        self.exempt_users: set[str] = set(exempt_users or ())
        self._windows: dict[str, _Window] = {}

    def _current(self, user_id: str, now: float) -> _Window:
        window = self._windows.get(user_id)
        if window is None or now - window.started >= self.window:
            self._prune(now)
            window = _Window(started=now)
            self._windows[user_id] = window
        return window

    def _prune(self, now: float):
        """Forget users whose window has expired."""
        expired = [uid for uid, w in self._windows.items() if now - w.started >= self.window]
        for uid in expired:
            del self._windows[uid]

    def check(self, user_id: str) -> tuple[bool, str]:
        """Consume one submission for ``user_id`` if the budget allows.

        Returns:
            Tuple of (allowed: bool, message: str)
            - If allowed, message is empty
            - If rate limited, message contains wait time info
        """
        if user_id in self.exempt_users:
            return True, ""

        now = time.monotonic()
        window = self._current(user_id, now)

        if window.count >= self.max_requests:
            remaining = max(1, int(self.window - (now - window.started)))
            message = (
                f"Rate limit exceeded. Please wait {remaining}s. "
                f"(Max {self.max_requests} submissions per {self.window}s)"
            )
            logger.info(f"Rate limit hit for user {user_id}: {remaining}s remaining")
            return False, message

        window.count += 1
        return True, ""

    def update_limits(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        exempt_users: Optional[Iterable[str]] = None,
    ):
        if max_requests is not None:
            self.max_requests = max(1, max_requests)
        if window_seconds is not None:
            self.window = max(1, window_seconds)
        if exempt_users is not None:
            self.exempt_users = set(exempt_users)

        logger.info(
            f"Rate limits updated: {self.max_requests} requests / {self.window}s "
            f"({len(self.exempt_users)} exempt users)"
        )

    def reset_user(self, user_id: str):
        if self._windows.pop(user_id, None) is not None:
            logger.debug(f"Rate limit reset for user {user_id}")

    def reset_all(self):
        self._windows.clear()
        logger.info("All rate limits reset")

    def get_user_status(self, user_id: str) -> dict:
        """Current budget for a user without consuming any of it."""
        now = time.monotonic()
        window = self._windows.get(user_id)
        if window is None or now - window.started >= self.window:
            made, reset_in = 0, 0
        else:
            made = window.count
            reset_in = max(0, int(self.window - (now - window.started)))

        return {
            "requests_made": made,
            "requests_remaining": max(0, self.max_requests - made),
            "max_requests": self.max_requests,
            "window_seconds": self.window,
            "reset_in_seconds": reset_in,
        }


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def init_rate_limiter_from_settings(settings) -> RateLimiter:
    """Configure the global limiter from ``PagedropSettings``."""
    limiter = get_rate_limiter()
    limiter.update_limits(
        max_requests=settings.ratelimit_max_requests,
        window_seconds=settings.ratelimit_window_seconds,
        exempt_users=settings.exempt_user_ids,
    )
    return limiter
