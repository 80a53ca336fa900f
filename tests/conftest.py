"""Root conftest — test infrastructure for all backend tests.

Every test runs without a database: sessions are AsyncMock stand-ins and
domain operations are patched where a test needs their results.

Provides:
- Process-local webhook stores so nothing reaches PostgreSQL
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from app.config.settings import settings
from app.core.idempotency import InMemoryIdempotencyStore
from app.core.rate_limit import InMemoryRateLimitStore, RateLimiter


@pytest.fixture(autouse=True)
def isolate_webhook_stores():
    """SAFETY: swap the shared webhook stores for fresh in-memory ones per test."""
    idempotency_store = InMemoryIdempotencyStore(ttl_seconds=settings.idempotency_ttl_seconds)
    rate_limiter = RateLimiter(store=InMemoryRateLimitStore())

    with (
        patch("app.services.rewardstack.pipeline.webhook_pipeline.idempotency_store", idempotency_store),
        patch("app.services.rewardstack.pipeline.webhook_pipeline.rate_limiter", rate_limiter),
    ):
        yield {"idempotency_store": idempotency_store, "rate_limiter": rate_limiter}
