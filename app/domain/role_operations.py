"""Role Store reads feeding the challenge permission resolver."""

import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationError, NotFoundError
from app.core.permissions import (
    ChallengeRoleSignals,
    EffectivePermissions,
    resolve_from_signals,
)
from app.domain.challenge_assignment_operations import challenge_assignment_ops
from app.domain.challenge_operations import challenge_ops
from app.domain.enrollment_operations import enrollment_ops
from app.domain.user_operations import user_ops
from app.domain.workspace_operations import workspace_ops
from app.models.workspace import WorkspaceMembership, WorkspaceRole


class RoleOperations:
    """Fetches the three role signals for a (user, challenge) pair."""

    async def get_membership(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> WorkspaceMembership | None:
        """The user's membership, or an unsaved ADMIN one for system admins."""
        membership = await workspace_ops.get_membership(db, workspace_id, user_id)
        if membership is not None:
            return membership
        user = await user_ops.get(db, user_id)
        if user is None or not user.is_admin:
            return None
        return WorkspaceMembership(
            workspace_id=workspace_id,
            user_id=user_id,
            role=WorkspaceRole.ADMIN.value,
        )

    async def get_workspace_role(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> str | None:
        membership = await self.get_membership(db, workspace_id, user_id)
        return membership.role if membership else None

    async def get_challenge_signals(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        workspace_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
    ) -> ChallengeRoleSignals:
        """
        Read membership, assignment and enrollment from the database.

        Always hits the store; results must not be cached across requests
        because a membership change could race with a gated mutation.

        Raises:
            AuthorizationError: user is not a member of the workspace
            NotFoundError: challenge does not belong to the workspace
        """
        membership = await self.get_membership(db, workspace_id, user_id)
        if membership is None:
            raise AuthorizationError("You are not a member of this workspace")

        challenge = await challenge_ops.get_in_workspace(db, workspace_id, challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge")

        workspace = await workspace_ops.get(db, workspace_id)
        self_enrollment_allowed = challenge.self_enrollment_enabled and (
            workspace.self_enrollment_enabled if workspace else True
        )

        assignment = await challenge_assignment_ops.get_for_manager(db, challenge_id, user_id)
        enrollment = await enrollment_ops.get(db, user_id, challenge_id)

        # A MANAGER who holds assignments is scoped to them; one without any acts workspace-wide
        manager_scoped = False
        if membership.role == WorkspaceRole.MANAGER.value:
            assigned_ids = await challenge_assignment_ops.list_challenge_ids_for_manager(
                db, workspace_id, user_id
            )
            manager_scoped = bool(assigned_ids)

        return ChallengeRoleSignals(
            membership=membership,
            assignment=assignment,
            enrollment=enrollment,
            self_enrollment_allowed=self_enrollment_allowed,
            manager_scoped=manager_scoped,
        )

    async def resolve(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        workspace_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
    ) -> EffectivePermissions:
        """Fresh effective permissions for a user in one challenge."""
        signals = await self.get_challenge_signals(db, user_id, workspace_id, challenge_id)
        return resolve_from_signals(signals, challenge_id=challenge_id)


role_ops = RoleOperations()
