"""Unit tests for the sliding-window webhook rate limiter."""

from app.core.rate_limit import (
    WEBHOOK_LIMIT,
    InMemoryRateLimitStore,
    RateLimitConfig,
    RateLimiter,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(store=InMemoryRateLimitStore(), clock=self.clock)
        self.config = RateLimitConfig(requests=100, window_seconds=60)

    def test_default_webhook_budget(self):
        assert WEBHOOK_LIMIT.requests == 100
        assert WEBHOOK_LIMIT.window_seconds == 60

    def test_hundred_requests_allowed(self):
        for _ in range(100):
            assert self.limiter.check("ws-1", self.config).allowed is True

    def test_101st_request_rejected_with_positive_retry_after(self):
        for _ in range(100):
            self.limiter.check("ws-1", self.config)
            self.clock.now += 0.1

        decision = self.limiter.check("ws-1", self.config)

        assert decision.allowed is False
        assert decision.remaining == 0
        assert 0 < decision.retry_after <= 60

    def test_rejected_request_is_not_recorded(self):
        for _ in range(100):
            self.limiter.check("ws-1", self.config)
        self.limiter.check("ws-1", self.config)
        self.limiter.check("ws-1", self.config)

        self.clock.now += 61
        assert self.limiter.check("ws-1", self.config).remaining == 99

    def test_window_slides(self):
        for _ in range(100):
            self.limiter.check("ws-1", self.config)
        assert self.limiter.check("ws-1", self.config).allowed is False

        self.clock.now += 61
        assert self.limiter.check("ws-1", self.config).allowed is True

    def test_keys_are_independent(self):
        for _ in range(100):
            self.limiter.check("ws-1", self.config)
        assert self.limiter.check("ws-2", self.config).allowed is True

    def test_remaining_counts_down(self):
        small = RateLimitConfig(requests=3, window_seconds=60)
        decision = self.limiter.check("ws-1", small)
        assert decision.remaining == 2
        assert self.limiter.check("ws-1", small).remaining == 1


class TestInMemoryRateLimitStore:
    def test_cleanup_drops_idle_keys(self):
        store = InMemoryRateLimitStore(cleanup_interval=10)
        config = RateLimitConfig(requests=5, window_seconds=60)
        store.hit("idle", 0.0, config)

        # Next hit after the window and the cleanup interval prunes "idle"
        store.hit("active", 500.0, config)
        assert "idle" not in store._requests

