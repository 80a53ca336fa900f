"""Workspace access control dependencies."""

from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, NotFoundError
from app.domain.workspace_operations import workspace_ops
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMembership, WorkspaceRole

from .auth import get_current_user


@dataclass
class WorkspaceContext:
    """The resolved workspace plus the caller's membership in it."""

    workspace: Workspace
    user: User
    membership: WorkspaceMembership | None

    @property
    def role(self) -> str | None:
        return self.membership.role if self.membership else None

    @property
    def is_admin(self) -> bool:
        return self.role == WorkspaceRole.ADMIN.value or bool(self.user.is_admin)


async def get_workspace_by_slug(
    slug: str,
    db: AsyncSession = Depends(get_db),
) -> Workspace:
    """Resolve the {slug} path parameter. Raises 404 if unknown."""
    workspace = await workspace_ops.get_by_slug(db, slug)
    if not workspace:
        raise NotFoundError("Workspace")
    return workspace


async def require_workspace_member(
    workspace: Workspace = Depends(get_workspace_by_slug),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceContext:
    """
    Require the current user to be a member of the workspace.

    System admins pass without a membership. Raises 403 otherwise.
    """
    membership = await workspace_ops.get_membership(db, workspace.id, current_user.id)
    if membership is None and not current_user.is_admin:
        raise AuthorizationError("You are not a member of this workspace")
    return WorkspaceContext(workspace=workspace, user=current_user, membership=membership)


async def require_workspace_admin(
    context: WorkspaceContext = Depends(require_workspace_member),
) -> WorkspaceContext:
    """
    Require the current user to hold the ADMIN role in the workspace.

    Returns the context if authorized, raises 403 otherwise.
    """
    if not context.is_admin:
        raise AuthorizationError("Workspace admin access required")
    return context
