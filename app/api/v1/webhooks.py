"""Inbound RewardSTACK partner webhooks.

No user authentication: the caller is the partner system. Authenticity comes
from the per-workspace HMAC signature checked inside the pipeline.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.services.rewardstack import webhook_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/rewardstack")
async def receive_rewardstack_webhook(
    request: Request,
    workspace_id: str | None = Query(default=None, alias="workspaceId"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Accept one partner event addressed to a workspace."""
    body = await request.body()
    signature = request.headers.get(webhook_pipeline.signature_header)
    return await webhook_pipeline.ingest(db, workspace_id, body, signature)
