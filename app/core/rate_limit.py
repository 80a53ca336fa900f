"""Rate limiting for partner webhook ingestion.

Sliding window counters keyed by an arbitrary string (the workspace id for
webhooks). The timestamp store is an injected interface so a multi-instance
deployment can swap the process-local map for a shared store with an atomic
check-and-record.
"""

import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeAlias

from app.config import settings

Timestamp: TypeAlias = float


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


@dataclass
class RateLimitDecision:
    """Outcome of a single check."""

    allowed: bool
    remaining: int
    retry_after: int = 0


WEBHOOK_LIMIT = RateLimitConfig(
    requests=settings.webhook_rate_limit_requests,
    window_seconds=settings.webhook_rate_limit_window_seconds,
)


class RateLimitStore(Protocol):
    """Storage for per-key request timestamps."""

    def hit(self, key: str, now: Timestamp, config: RateLimitConfig) -> RateLimitDecision:
        """Atomically prune the window, then record `now` if under budget."""
        ...


class InMemoryRateLimitStore:
    """Process-local timestamp store with periodic cleanup of idle keys.

    Suitable for single-instance deployments. The check and the record
    happen in one synchronous call, so concurrent tasks on the same event
    loop cannot interleave between them.
    """

    def __init__(self, cleanup_interval: int = 300) -> None:
        self._requests: dict[str, list[Timestamp]] = defaultdict(list)
        self._last_cleanup: Timestamp = 0.0
        self._cleanup_interval = cleanup_interval

    def _cleanup_expired(self, now: Timestamp, window_seconds: int) -> None:
        """Remove expired entries to prevent memory growth."""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds
        for key in list(self._requests):
            recent = [ts for ts in self._requests[key] if ts > cutoff]
            if recent:
                self._requests[key] = recent
            else:
                del self._requests[key]

        self._last_cleanup = now

    def hit(self, key: str, now: Timestamp, config: RateLimitConfig) -> RateLimitDecision:
        self._cleanup_expired(now, config.window_seconds)

        cutoff = now - config.window_seconds
        recent_requests = [ts for ts in self._requests[key] if ts > cutoff]

        if len(recent_requests) >= config.requests:
            self._requests[key] = recent_requests
            retry_after = int(min(recent_requests) + config.window_seconds - now) + 1
            return RateLimitDecision(allowed=False, remaining=0, retry_after=max(retry_after, 1))

        recent_requests.append(now)
        self._requests[key] = recent_requests
        return RateLimitDecision(
            allowed=True, remaining=config.requests - len(recent_requests)
        )


class RateLimiter:
    """Sliding window rate limiter over a pluggable store."""

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Callable[[], Timestamp] = time.time,
    ) -> None:
        self.store: RateLimitStore = store or InMemoryRateLimitStore()
        self._clock = clock

    def check(self, key: str, config: RateLimitConfig) -> RateLimitDecision:
        """Record a request for key and report whether it is within budget."""
        return self.store.hit(key, self._clock(), config)


# Singleton instance for webhook ingestion
webhook_rate_limiter = RateLimiter()
