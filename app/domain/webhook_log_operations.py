"""Domain operations for the RewardSTACK webhook audit log."""

import logging
import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.webhook import WebhookLog, WebhookStats

logger = logging.getLogger(__name__)

# Processing-time average is taken over this many most recent processed logs
STATS_SAMPLE_SIZE = 100


class WebhookLogOperations:
    """Append, settle and query webhook audit records."""

    async def create(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        event_type: str,
        payload: dict[str, Any] | None,
        event_id: str | None = None,
        external_ref: str | None = None,
        error: str | None = None,
    ) -> WebhookLog:
        log = WebhookLog(
            workspace_id=workspace_id,
            event_id=event_id,
            event_type=event_type,
            external_ref=external_ref,
            payload=payload,
            error=error,
            received_at=datetime.now(UTC),
        )
        db.add(log)
        await db.flush()
        return log

    async def mark_processed(self, db: AsyncSession, log: WebhookLog) -> WebhookLog:
        log.processed = True
        log.processed_at = datetime.now(UTC)
        log.error = None
        db.add(log)
        await db.flush()
        return log

    async def mark_failed(self, db: AsyncSession, log: WebhookLog, error: str) -> WebhookLog:
        log.processed = False
        log.error = error[:2000]
        db.add(log)
        await db.flush()
        return log

    async def get_stats(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        since: datetime,
    ) -> WebhookStats:
        """Health figures for logs received since `since`."""
        in_window = (
            WebhookLog.workspace_id == workspace_id,  # type: ignore[arg-type]
            WebhookLog.received_at >= since,  # type: ignore[arg-type,operator]
        )

        total = (await db.execute(select(func.count()).select_from(WebhookLog).where(*in_window))).scalar() or 0
        processed = (
            await db.execute(
                select(func.count()).select_from(WebhookLog).where(*in_window, WebhookLog.processed.is_(True))  # type: ignore[attr-defined]
            )
        ).scalar() or 0
        failed = (
            await db.execute(
                select(func.count()).select_from(WebhookLog).where(
                    *in_window,
                    WebhookLog.processed.is_(False),  # type: ignore[attr-defined]
                    WebhookLog.error.is_not(None),  # type: ignore[union-attr]
                )
            )
        ).scalar() or 0

        recent = await db.execute(
            select(WebhookLog.received_at, WebhookLog.processed_at)
            .where(
                *in_window,
                WebhookLog.processed.is_(True),  # type: ignore[attr-defined]
                WebhookLog.processed_at.is_not(None),  # type: ignore[union-attr]
            )
            .order_by(WebhookLog.received_at.desc())  # type: ignore[attr-defined]
            .limit(STATS_SAMPLE_SIZE)
        )
        durations = [
            (processed_at - received_at).total_seconds() * 1000
            for received_at, processed_at in recent.all()
        ]
        avg_ms = round(sum(durations) / len(durations)) if durations else None

        return WebhookStats(
            total=total,
            processed=processed,
            failed=failed,
            pending=max(total - processed - failed, 0),
            processing_rate=round(processed / total * 100, 2) if total else 0.0,
            avg_processing_ms=avg_ms,
        )

    async def list_failed(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        limit: int = 50,
        ids: list[uuid_pkg.UUID] | None = None,
    ) -> list[WebhookLog]:
        """Unprocessed logs carrying an error, newest first."""
        statement = select(WebhookLog).where(
            WebhookLog.workspace_id == workspace_id,  # type: ignore[arg-type]
            WebhookLog.processed.is_(False),  # type: ignore[attr-defined]
            WebhookLog.error.is_not(None),  # type: ignore[union-attr]
        )
        if ids:
            statement = statement.where(WebhookLog.id.in_(ids))  # type: ignore[attr-defined]
        statement = statement.order_by(WebhookLog.received_at.desc()).limit(limit)  # type: ignore[attr-defined]
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def list_for_refs(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        refs: list[str],
    ) -> list[WebhookLog]:
        """Logs about the given partner objects, newest first."""
        if not refs:
            return []
        statement = (
            select(WebhookLog)
            .where(
                WebhookLog.workspace_id == workspace_id,  # type: ignore[arg-type]
                WebhookLog.external_ref.in_(refs),  # type: ignore[union-attr]
            )
            .order_by(WebhookLog.received_at.desc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def cleanup(
        self,
        db: AsyncSession,
        older_than: datetime,
        workspace_id: uuid_pkg.UUID | None = None,
    ) -> int:
        """Delete processed, error-free logs received before older_than."""
        statement = delete(WebhookLog).where(
            WebhookLog.processed.is_(True),  # type: ignore[attr-defined]
            WebhookLog.error.is_(None),  # type: ignore[union-attr]
            WebhookLog.received_at < older_than,  # type: ignore[arg-type,operator]
        )
        if workspace_id is not None:
            statement = statement.where(WebhookLog.workspace_id == workspace_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        deleted = result.rowcount or 0
        logger.info(f"Cleaned up {deleted} webhook logs older than {older_than.isoformat()}")
        return deleted


webhook_log_ops = WebhookLogOperations()
