"""Unit tests for webhook idempotency stores."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.idempotency import (
    DatabaseIdempotencyStore,
    InMemoryIdempotencyStore,
    build_idempotency_store,
)

from tests.helpers.mock_factories import mock_scalar_result


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryIdempotencyStore:
    def setup_method(self):
        self.clock = FakeClock()
        self.store = InMemoryIdempotencyStore(ttl_seconds=60, clock=self.clock)
        self.workspace_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_unknown_event_is_not_processed(self):
        assert await self.store.is_processed("evt1", self.workspace_id) is False

    @pytest.mark.asyncio
    async def test_mark_then_check(self):
        assert await self.store.mark_processed("evt1", self.workspace_id) is True
        assert await self.store.is_processed("evt1", self.workspace_id) is True

    @pytest.mark.asyncio
    async def test_second_mark_loses(self):
        await self.store.mark_processed("evt1", self.workspace_id)
        assert await self.store.mark_processed("evt1", self.workspace_id) is False

    @pytest.mark.asyncio
    async def test_key_is_scoped_to_workspace(self):
        await self.store.mark_processed("evt1", self.workspace_id)
        assert await self.store.is_processed("evt1", uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_key_expires_after_ttl(self):
        await self.store.mark_processed("evt1", self.workspace_id)
        self.clock.now = 61
        assert await self.store.is_processed("evt1", self.workspace_id) is False
        assert await self.store.mark_processed("evt1", self.workspace_id) is True

    @pytest.mark.asyncio
    async def test_cleanup_expired(self):
        await self.store.mark_processed("old", self.workspace_id)
        self.clock.now = 30
        await self.store.mark_processed("new", self.workspace_id)
        self.clock.now = 70

        assert await self.store.cleanup_expired() == 1
        assert await self.store.is_processed("new", self.workspace_id) is True


class TestDatabaseIdempotencyStore:
    def setup_method(self):
        self.session = AsyncMock()
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=self.session)
        context.__aexit__ = AsyncMock(return_value=False)
        self.store = DatabaseIdempotencyStore(
            session_factory=MagicMock(return_value=context), ttl_seconds=3600
        )
        self.workspace_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_mark_processed_reports_insert(self):
        self.session.execute.return_value = mock_scalar_result("evt1")
        assert await self.store.mark_processed("evt1", self.workspace_id) is True
        self.session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mark_processed_reports_live_conflict(self):
        self.session.execute.return_value = mock_scalar_result(None)
        assert await self.store.mark_processed("evt1", self.workspace_id) is False

    @pytest.mark.asyncio
    async def test_is_processed(self):
        self.session.execute.return_value = mock_scalar_result("evt1")
        assert await self.store.is_processed("evt1", self.workspace_id) is True

    @pytest.mark.asyncio
    async def test_cleanup_returns_rowcount(self):
        result = MagicMock()
        result.rowcount = 4
        self.session.execute.return_value = result
        assert await self.store.cleanup_expired() == 4


class TestBuildIdempotencyStore:
    def test_memory_backend(self):
        assert isinstance(build_idempotency_store("memory"), InMemoryIdempotencyStore)

    def test_database_backend(self):
        assert isinstance(build_idempotency_store("database"), DatabaseIdempotencyStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown webhook idempotency backend"):
            build_idempotency_store("redis")
