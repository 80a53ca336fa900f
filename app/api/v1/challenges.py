"""Challenge permission and manager assignment endpoints."""

import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, require_workspace_admin, require_workspace_member
from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from app.domain.challenge_assignment_operations import challenge_assignment_ops
from app.domain.challenge_operations import challenge_ops
from app.domain.enrollment_operations import enrollment_ops
from app.domain.role_operations import role_ops
from app.models.challenge import (
    ChallengeAssignmentCreate,
    ChallengeAssignmentRead,
    EnrollmentRead,
    EnrollmentStatus,
)

router = APIRouter(prefix="/workspaces/{slug}/challenges", tags=["challenges"])


@router.get("/{challenge_id}/permissions")
async def get_challenge_permissions(
    challenge_id: uuid_pkg.UUID,
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """The caller's effective permissions in one challenge."""
    permissions = await role_ops.resolve(db, context.user.id, context.workspace.id, challenge_id)
    return permissions.to_dict()


@router.post("/{challenge_id}/enroll", response_model=EnrollmentRead)
async def enroll_in_challenge(
    challenge_id: uuid_pkg.UUID,
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Self-enroll the caller. Gated by the resolved can_enroll capability."""
    permissions = await role_ops.resolve(db, context.user.id, context.workspace.id, challenge_id)
    if not permissions.can_enroll:
        if permissions.is_participant:
            raise ConflictError("Already enrolled")
        raise AuthorizationError("Self-enrollment is not enabled for this challenge")
    return await enrollment_ops.set_status(
        db, context.user.id, challenge_id, EnrollmentStatus.ENROLLED
    )


@router.get("/{challenge_id}/managers", response_model=list[ChallengeAssignmentRead])
async def list_challenge_managers(
    challenge_id: uuid_pkg.UUID,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> list[Any]:
    """List managers assigned to a challenge (admin only)."""
    challenge = await challenge_ops.get_in_workspace(db, context.workspace.id, challenge_id)
    if not challenge:
        raise NotFoundError("Challenge")
    return await challenge_assignment_ops.list_for_challenge(db, context.workspace.id, challenge_id)


@router.post(
    "/{challenge_id}/managers",
    response_model=ChallengeAssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def assign_challenge_manager(
    challenge_id: uuid_pkg.UUID,
    data: ChallengeAssignmentCreate,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Grant a workspace MANAGER review rights over one challenge (admin only)."""
    return await challenge_assignment_ops.assign(
        db,
        workspace_id=context.workspace.id,
        challenge_id=challenge_id,
        manager_id=data.manager_id,
        assigned_by=context.user.id,
    )


@router.delete("/{challenge_id}/managers/{manager_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_challenge_manager(
    challenge_id: uuid_pkg.UUID,
    manager_id: uuid_pkg.UUID,
    context: WorkspaceContext = Depends(require_workspace_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove a manager assignment (admin only)."""
    await challenge_assignment_ops.remove(db, context.workspace.id, challenge_id, manager_id)
