"""Reward ledger endpoints: admin views, participant view, reconciliation."""

import uuid as uuid_pkg
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, require_workspace_admin, require_workspace_member
from app.core.database import get_db
from app.core.exceptions import NotFoundError, ValidationError
from app.domain.reward_ledger import reward_ledger
from app.domain.webhook_log_operations import webhook_log_ops
from app.models.reward import ParticipantRewardRead, RewardIssuanceRead, RewardStatus
from app.models.webhook import WebhookLogRead
from app.services.reward_reconciliation import reward_reconciler

router = APIRouter(prefix="/workspaces/{slug}/rewards", tags=["rewards"])


def _parse_status(raw: str | None) -> RewardStatus | None:
    if raw is None:
        return None
    try:
        return RewardStatus(raw.upper())
    except ValueError:
        raise ValidationError("Invalid status. Must be PENDING, ISSUED or FAILED") from None


@router.get("", response_model=list[RewardIssuanceRead])
async def list_rewards(
    status: str | None = None,
    skip: int = 0,
    limit: int = 100,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> list[Any]:
    """Ledger entries for the workspace, newest first (admin only)."""
    return await reward_ledger.list_for_workspace(
        db, context.workspace.id, status=_parse_status(status), skip=skip, limit=limit
    )


@router.get("/summary")
async def get_reward_summary(
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Entry counts per ledger status (admin only)."""
    counts = await reward_ledger.status_summary(db, context.workspace.id)
    return {"counts": counts, "pending": counts.get(RewardStatus.PENDING.value, 0)}


@router.get("/mine", response_model=list[ParticipantRewardRead])
async def list_my_rewards(
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> list[Any]:
    """The caller's own rewards. Shows ledger status only."""
    return await reward_ledger.list_for_user(db, context.workspace.id, context.user.id)


@router.get("/{reward_id}/webhook-logs", response_model=list[WebhookLogRead])
async def list_reward_webhook_logs(
    reward_id: uuid_pkg.UUID,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> list[Any]:
    """Partner callbacks received about one ledger entry (admin only)."""
    issuance = await reward_ledger.get_scoped(db, context.workspace.id, reward_id)
    if not issuance:
        raise NotFoundError("Reward issuance")
    return await webhook_log_ops.list_for_refs(
        db, context.workspace.id, reward_ledger.external_refs(issuance)
    )


@router.post("/reconcile")
async def reconcile_rewards(
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create ledger entries missing for approved submissions (admin only)."""
    report = await reward_reconciler.run(db, workspace_id=context.workspace.id)
    return asdict(report)
