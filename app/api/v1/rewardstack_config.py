"""RewardSTACK integration settings (workspace admins only)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, require_workspace_admin
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.domain.workspace_operations import workspace_ops
from app.models.workspace import RewardStackConfigRead, RewardStackConfigUpdate, Workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{slug}/rewardstack", tags=["rewardstack"])


def _to_read(workspace: Workspace) -> RewardStackConfigRead:
    return RewardStackConfigRead(
        enabled=workspace.rewardstack_enabled,
        webhook_secret_configured=bool(workspace.rewardstack_webhook_secret),
    )


@router.get("/config", response_model=RewardStackConfigRead)
async def get_rewardstack_config(
    context: WorkspaceContext = Depends(require_workspace_admin),
) -> RewardStackConfigRead:
    return _to_read(context.workspace)


@router.put("/config", response_model=RewardStackConfigRead)
async def update_rewardstack_config(
    data: RewardStackConfigUpdate,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> RewardStackConfigRead:
    """
    Enable/disable the integration and rotate the webhook secret.

    Enabling requires a secret, either in this request or already stored,
    since unsigned deliveries are always rejected.
    """
    workspace = context.workspace
    if data.webhook_secret is not None:
        has_secret = bool(data.webhook_secret)
    else:
        has_secret = bool(workspace.rewardstack_webhook_secret)
    if data.enabled and not has_secret:
        raise ValidationError("Webhook secret is required when enabling RewardSTACK")

    workspace = await workspace_ops.update_rewardstack_config(
        db, workspace, enabled=data.enabled, webhook_secret=data.webhook_secret
    )
    if data.webhook_secret is None:
        secret_change = "unchanged"
    else:
        secret_change = "rotated" if data.webhook_secret else "cleared"
    logger.info(
        f"RewardSTACK config for workspace {workspace.id} updated by {context.user.id}: "
        f"enabled={workspace.rewardstack_enabled}, secret {secret_change}"
    )
    return _to_read(workspace)
