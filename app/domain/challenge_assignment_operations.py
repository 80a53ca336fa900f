"""Domain operations for ChallengeAssignment - challenge-scoped manager grants."""

import logging
import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.domain.challenge_operations import challenge_ops
from app.domain.workspace_operations import workspace_ops
from app.models.challenge import ChallengeAssignment
from app.models.workspace import WorkspaceRole

logger = logging.getLogger(__name__)


class ChallengeAssignmentOperations:
    """Create, list and remove (challenge, manager) pairs."""

    async def get_for_manager(
        self,
        db: AsyncSession,
        challenge_id: uuid_pkg.UUID,
        manager_id: uuid_pkg.UUID,
    ) -> ChallengeAssignment | None:
        statement = select(ChallengeAssignment).where(
            ChallengeAssignment.challenge_id == challenge_id,  # type: ignore[arg-type]
            ChallengeAssignment.manager_id == manager_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def list_for_challenge(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
    ) -> list[ChallengeAssignment]:
        statement = (
            select(ChallengeAssignment)
            .where(
                ChallengeAssignment.workspace_id == workspace_id,  # type: ignore[arg-type]
                ChallengeAssignment.challenge_id == challenge_id,  # type: ignore[arg-type]
            )
            .order_by(ChallengeAssignment.assigned_at.desc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def list_challenge_ids_for_manager(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        manager_id: uuid_pkg.UUID,
    ) -> list[uuid_pkg.UUID]:
        statement = select(ChallengeAssignment.challenge_id).where(
            ChallengeAssignment.workspace_id == workspace_id,  # type: ignore[arg-type]
            ChallengeAssignment.manager_id == manager_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def assign(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
        manager_id: uuid_pkg.UUID,
        assigned_by: uuid_pkg.UUID,
    ) -> ChallengeAssignment:
        """
        Assign a manager to a challenge.

        Raises:
            NotFoundError: challenge not in this workspace
            ValidationError: target user does not hold the MANAGER role here
            ConflictError: already assigned
        """
        challenge = await challenge_ops.get_in_workspace(db, workspace_id, challenge_id)
        if not challenge:
            raise NotFoundError("Challenge")

        role = await workspace_ops.get_member_role(db, workspace_id, manager_id)
        if role != WorkspaceRole.MANAGER.value:
            raise ValidationError("User must have MANAGER role in this workspace")

        if await self.get_for_manager(db, challenge_id, manager_id):
            raise ConflictError("Manager is already assigned to this challenge")

        assignment = ChallengeAssignment(
            challenge_id=challenge_id,
            manager_id=manager_id,
            workspace_id=workspace_id,
            assigned_by=assigned_by,
        )
        try:
            async with db.begin_nested():
                db.add(assignment)
                await db.flush()
        except IntegrityError:
            # Lost a race against a concurrent assignment of the same pair
            raise ConflictError("Manager is already assigned to this challenge") from None

        await db.refresh(assignment)
        logger.info(f"Assigned manager {manager_id} to challenge {challenge_id}")
        return assignment

    async def remove(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID,
        manager_id: uuid_pkg.UUID,
    ) -> None:
        """Remove an assignment. Raises NotFoundError when absent."""
        assignment = await self.get_for_manager(db, challenge_id, manager_id)
        if not assignment or assignment.workspace_id != workspace_id:
            raise NotFoundError("Assignment")
        await db.delete(assignment)
        await db.flush()
        logger.info(f"Removed manager {manager_id} from challenge {challenge_id}")


challenge_assignment_ops = ChallengeAssignmentOperations()
