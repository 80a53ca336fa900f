"""Internal task scheduler using APScheduler.

Runs reward reconciliation and webhook housekeeping within the FastAPI
process. Uses PostgreSQL advisory locks to prevent duplicate execution
when multiple instances are running.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text

from app.config import settings
from app.core.database import direct_session_maker
from app.core.idempotency import webhook_idempotency_store
from app.domain.webhook_log_operations import webhook_log_ops
from app.services.reward_reconciliation import reward_reconciler

logger = logging.getLogger(__name__)

# Advisory lock IDs (arbitrary unique integers, one per job)
REWARD_RECONCILIATION_LOCK_ID = 734561
WEBHOOK_CLEANUP_LOCK_ID = 734562


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Advisory locks are session-level, so this uses a direct (non-pooled)
    connection. pg_try_advisory_lock() returns immediately: if another
    instance holds the lock, we skip.
    """
    async with direct_session_maker() as session:
        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_reward_reconciliation() -> dict[str, Any] | None:
    """
    Create ledger entries missing for approved submissions.

    Returns the report dict if executed, None if skipped (lock held by another instance).
    """
    async with advisory_lock(REWARD_RECONCILIATION_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Reward reconciliation: skipped (another instance is running)")
            return None

        logger.info("[scheduler] Reward reconciliation: starting")

        try:
            async with direct_session_maker() as db:
                report = await reward_reconciler.run(db)
                await db.commit()

            logger.info(
                f"[scheduler] Reward reconciliation: completed "
                f"({report.issuances_created} created, "
                f"{report.submissions_failed} failed, "
                f"{report.duration_seconds}s)"
            )
            return asdict(report)

        except Exception as e:
            logger.exception(f"[scheduler] Reward reconciliation: failed with error: {e}")
            return None


async def run_webhook_cleanup() -> dict[str, Any] | None:
    """
    Delete old processed webhook logs and expired idempotency keys.

    Returns the counts if executed, None if skipped (lock held by another instance).
    """
    async with advisory_lock(WEBHOOK_CLEANUP_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Webhook cleanup: skipped (another instance is running)")
            return None

        logger.info("[scheduler] Webhook cleanup: starting")

        try:
            older_than = datetime.now(UTC) - timedelta(days=settings.webhook_log_retention_days)
            async with direct_session_maker() as db:
                logs_deleted = await webhook_log_ops.cleanup(db, older_than)
                await db.commit()
            keys_deleted = await webhook_idempotency_store.cleanup_expired()

            logger.info(
                f"[scheduler] Webhook cleanup: completed "
                f"({logs_deleted} logs, {keys_deleted} idempotency keys removed)"
            )
            return {"logs_deleted": logs_deleted, "idempotency_keys_deleted": keys_deleted}

        except Exception as e:
            logger.exception(f"[scheduler] Webhook cleanup: failed with error: {e}")
            return None


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            run_reward_reconciliation,
            trigger=IntervalTrigger(minutes=settings.reward_reconciliation_interval_minutes),
            id="reward_reconciliation",
            name="Reward Ledger Reconciliation",
            replace_existing=True,
        )

        # Cleanup: daily at configured hour (UTC)
        self._scheduler.add_job(
            run_webhook_cleanup,
            trigger=CronTrigger(hour=settings.webhook_cleanup_hour, minute=0),
            id="webhook_cleanup",
            name="Webhook Log Cleanup",
            replace_existing=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with reconciliation every "
            f"{settings.reward_reconciliation_interval_minutes} min, "
            f"webhook cleanup at {settings.webhook_cleanup_hour:02d}:00 UTC"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            logger.info("[scheduler] Stopped")


scheduler = Scheduler()
