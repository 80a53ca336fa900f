"""Idempotency keys for partner webhook events.

A key is the (external event id, workspace id) pair. It is marked only after
an event's side effects were applied, so a delivery that failed or timed out
mid-dispatch stays eligible for reprocessing.

Two stores implement the same interface:
- InMemoryIdempotencyStore: process-local, TTL-bounded
- DatabaseIdempotencyStore: PostgreSQL table shared by every instance;
  mark_processed is an upsert that only re-arms expired keys, so
  concurrent markers cannot both win
"""

import logging
import time
import uuid as uuid_pkg
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from app.config import settings
from app.models.webhook import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyStore(Protocol):
    """Storage for processed (event_id, workspace_id) pairs."""

    async def is_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool: ...

    async def mark_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool:
        """Mark the pair processed. Returns False when it already was."""
        ...

    async def cleanup_expired(self) -> int: ...


class InMemoryIdempotencyStore:
    """Process-local idempotency keys with a TTL."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.idempotency_ttl_seconds
        self._clock = clock
        self._keys: dict[tuple[str, uuid_pkg.UUID], float] = {}

    def _expired(self, marked_at: float) -> bool:
        return self._clock() - marked_at > self._ttl

    async def is_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool:
        marked_at = self._keys.get((event_id, workspace_id))
        if marked_at is None:
            return False
        if self._expired(marked_at):
            del self._keys[(event_id, workspace_id)]
            return False
        return True

    async def mark_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool:
        key = (event_id, workspace_id)
        marked_at = self._keys.get(key)
        if marked_at is not None and not self._expired(marked_at):
            return False
        self._keys[key] = self._clock()
        return True

    async def cleanup_expired(self) -> int:
        expired = [key for key, marked_at in self._keys.items() if self._expired(marked_at)]
        for key in expired:
            del self._keys[key]
        return len(expired)

    def clear(self) -> None:
        self._keys.clear()


class DatabaseIdempotencyStore:
    """Idempotency keys in the webhook_idempotency_keys table."""

    def __init__(
        self,
        session_factory: Callable[[], Any] | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.idempotency_ttl_seconds

    def _session(self) -> Any:
        if self._session_factory is None:
            from app.core.database import async_session_maker

            self._session_factory = async_session_maker
        return self._session_factory()

    def _cutoff(self) -> datetime:
        return datetime.now(UTC) - timedelta(seconds=self._ttl)

    async def is_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(IdempotencyRecord.event_id).where(
                    IdempotencyRecord.event_id == event_id,  # type: ignore[arg-type]
                    IdempotencyRecord.workspace_id == workspace_id,  # type: ignore[arg-type]
                    IdempotencyRecord.processed_at > self._cutoff(),  # type: ignore[arg-type]
                )
            )
            return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, workspace_id: uuid_pkg.UUID) -> bool:
        now = datetime.now(UTC)
        async with self._session() as session:
            stmt = (
                insert(IdempotencyRecord)
                .values(event_id=event_id, workspace_id=workspace_id, processed_at=now)
                .on_conflict_do_update(
                    index_elements=["event_id", "workspace_id"],
                    set_={"processed_at": now},
                    # Only an expired key is re-armed; a live one is left alone
                    where=IdempotencyRecord.processed_at <= self._cutoff(),  # type: ignore[arg-type]
                )
                .returning(IdempotencyRecord.event_id)
            )
            result = await session.execute(stmt)
            inserted = result.scalar_one_or_none() is not None
            await session.commit()
            return inserted

    async def cleanup_expired(self) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(IdempotencyRecord).where(
                    IdempotencyRecord.processed_at <= self._cutoff()  # type: ignore[arg-type]
                )
            )
            await session.commit()
            deleted = result.rowcount or 0
            if deleted:
                logger.info(f"Removed {deleted} expired webhook idempotency keys")
            return deleted


def build_idempotency_store(backend: str | None = None) -> IdempotencyStore:
    """Build the store selected by settings.webhook_idempotency_backend."""
    backend = backend or settings.webhook_idempotency_backend
    if backend == "memory":
        return InMemoryIdempotencyStore()
    if backend == "database":
        return DatabaseIdempotencyStore()
    raise ValueError(f"Unknown webhook idempotency backend: {backend}")


webhook_idempotency_store: IdempotencyStore = build_idempotency_store()
