"""Per-user rate limiting for endpoints that start generation work.

Sliding window kept in memory, so limits apply per API instance.
"""

import time
import uuid as uuid_pkg
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import TypeAlias

from fastapi import HTTPException, status


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


# Program generation is the expensive path; recommendations are mostly cache hits
GENERATION_LIMIT = RateLimitConfig(requests=5, window_seconds=600)
RECOMMENDATION_LIMIT = RateLimitConfig(requests=30, window_seconds=60)


UserId: TypeAlias = uuid_pkg.UUID
Timestamp: TypeAlias = float


class RateLimiter:
    """In-memory sliding-window rate limiter keyed by (user, endpoint)."""

    def __init__(self) -> None:
        self._requests: dict[tuple[UserId, str], deque[Timestamp]] = defaultdict(deque)
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = 300

    def _prune(self, window: deque[Timestamp], cutoff: Timestamp) -> None:
        while window and window[0] <= cutoff:
            window.popleft()

    def _cleanup(self, now: Timestamp, window_seconds: int) -> None:
        """Drop idle keys so memory does not grow with the number of users."""
        if now - self._last_cleanup < self._cleanup_interval:
            return
        cutoff = now - window_seconds
        for key in list(self._requests):
            self._prune(self._requests[key], cutoff)
            if not self._requests[key]:
                del self._requests[key]
        self._last_cleanup = now

    def check_rate_limit(
        self,
        user_id: UserId,
        endpoint_key: str,
        config: RateLimitConfig,
    ) -> None:
        """Record a request, or reject it if the user is over the limit.

        Raises:
            HTTPException: 429 Too Many Requests if limit exceeded
        """
        now = time.monotonic()
        self._cleanup(now, config.window_seconds)

        window = self._requests[(user_id, endpoint_key)]
        self._prune(window, now - config.window_seconds)

        if len(window) >= config.requests:
            retry_after = int(window[0] + config.window_seconds - now) + 1
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "code": "rate_limited",
                    "message": f"Rate limit exceeded. Try again in {retry_after} seconds.",
                },
                headers={"Retry-After": str(retry_after)},
            )

        window.append(now)

    def get_remaining(
        self,
        user_id: UserId,
        endpoint_key: str,
        config: RateLimitConfig,
    ) -> int:
        """Get remaining requests in current window."""
        cutoff = time.monotonic() - config.window_seconds
        window = self._requests.get((user_id, endpoint_key), deque())
        recent = sum(1 for ts in window if ts > cutoff)
        return max(0, config.requests - recent)

    def reset(self) -> None:
        self._requests.clear()


# Singleton instance for application-wide use
rate_limiter = RateLimiter()
