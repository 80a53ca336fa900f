"""Webhook monitoring and recovery endpoints (workspace admins only)."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, require_workspace_admin
from app.config import settings
from app.core.database import get_db
from app.domain.webhook_log_operations import webhook_log_ops
from app.models.webhook import WebhookLogRead, WebhookRetryRequest, WebhookStats
from app.services.rewardstack import webhook_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{slug}/webhooks", tags=["webhooks"])


@router.get("/stats", response_model=WebhookStats)
async def get_webhook_stats(
    since_hours: int = Query(default=24, ge=1, le=24 * 30),
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> WebhookStats:
    """Delivery health for the last `since_hours` hours."""
    since = datetime.now(UTC) - timedelta(hours=since_hours)
    return await webhook_log_ops.get_stats(db, context.workspace.id, since)


@router.get("/failed", response_model=list[WebhookLogRead])
async def list_failed_webhooks(
    limit: int = Query(default=50, ge=1, le=200),
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> list[Any]:
    """Most recent deliveries that were not processed."""
    return await webhook_log_ops.list_failed(db, context.workspace.id, limit=limit)


@router.post("/retry")
async def retry_failed_webhooks(
    data: WebhookRetryRequest,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Re-dispatch failed deliveries. Rejected signatures are never retried."""
    report = await webhook_pipeline.retry_failed(
        db, context.workspace.id, log_ids=data.log_ids, limit=data.limit
    )
    return report.to_dict()


@router.post("/cleanup")
async def cleanup_webhook_logs(
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Delete processed, error-free logs older than the retention window."""
    older_than = datetime.now(UTC) - timedelta(days=settings.webhook_log_retention_days)
    deleted = await webhook_log_ops.cleanup(db, older_than, workspace_id=context.workspace.id)
    return {"deleted": deleted, "retentionDays": settings.webhook_log_retention_days}
