"""Domain operations for ActivitySubmission model."""

import uuid as uuid_pkg
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.challenge import Activity, ActivityTemplate
from app.models.submission import ActivitySubmission, SubmissionStatus


class SubmissionOperations(BaseOperations[ActivitySubmission]):
    """Submission reads and compare-and-swap status transitions."""

    def __init__(self) -> None:
        super().__init__(ActivitySubmission)

    async def get_scoped(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        submission_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID | None = None,
    ) -> ActivitySubmission | None:
        """Get a submission within a workspace (and challenge, when given)."""
        statement = select(ActivitySubmission).where(
            ActivitySubmission.id == submission_id,  # type: ignore[arg-type]
            ActivitySubmission.workspace_id == workspace_id,  # type: ignore[arg-type]
        )
        if challenge_id is not None:
            statement = statement.where(ActivitySubmission.challenge_id == challenge_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def transition(
        self,
        db: AsyncSession,
        submission_id: uuid_pkg.UUID,
        from_statuses: Iterable[str],
        values: dict[str, Any],
    ) -> ActivitySubmission | None:
        """
        Atomically move a submission out of one of from_statuses.

        Issues UPDATE ... WHERE status IN (...) RETURNING, so of two concurrent
        reviewers exactly one gets the row back. Returns None when the
        submission was no longer in an allowed state.
        """
        statement = (
            update(ActivitySubmission)
            .where(
                ActivitySubmission.id == submission_id,  # type: ignore[arg-type]
                ActivitySubmission.status.in_(list(from_statuses)),  # type: ignore[attr-defined]
            )
            .values(**values)
            .returning(ActivitySubmission)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def link_reward_issuance(
        self,
        db: AsyncSession,
        submission_id: uuid_pkg.UUID,
        reward_issuance_id: uuid_pkg.UUID,
    ) -> bool:
        """Set reward_issuance_id once. Returns False if already linked."""
        statement = (
            update(ActivitySubmission)
            .where(
                ActivitySubmission.id == submission_id,  # type: ignore[arg-type]
                ActivitySubmission.reward_issuance_id.is_(None),  # type: ignore[union-attr]
            )
            .values(reward_issuance_id=reward_issuance_id)
            .returning(ActivitySubmission.id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none() is not None

    async def list_pending(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        challenge_ids: list[uuid_pkg.UUID] | None = None,
        limit: int = 100,
    ) -> list[ActivitySubmission]:
        """PENDING submissions, oldest first. challenge_ids=None means all challenges."""
        statement = select(ActivitySubmission).where(
            ActivitySubmission.workspace_id == workspace_id,  # type: ignore[arg-type]
            ActivitySubmission.status == SubmissionStatus.PENDING.value,  # type: ignore[arg-type]
        )
        if challenge_ids is not None:
            if not challenge_ids:
                return []
            statement = statement.where(ActivitySubmission.challenge_id.in_(challenge_ids))  # type: ignore[attr-defined]
        statement = statement.order_by(ActivitySubmission.submitted_at.asc()).limit(limit)  # type: ignore[attr-defined]
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def list_approved_without_issuance(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID | None = None,
        limit: int = 100,
    ) -> list[ActivitySubmission]:
        """APPROVED submissions that never got a ledger entry linked.

        Only submissions whose activity still resolves to a template are
        returned; without one there is nothing to issue, and such rows would
        otherwise hold the head of the queue on every run.
        """
        statement = (
            select(ActivitySubmission)
            .join(Activity, Activity.id == ActivitySubmission.activity_id)  # type: ignore[arg-type]
            .join(ActivityTemplate, ActivityTemplate.id == Activity.template_id)  # type: ignore[arg-type]
            .where(
                ActivitySubmission.status == SubmissionStatus.APPROVED.value,  # type: ignore[arg-type]
                ActivitySubmission.reward_issuance_id.is_(None),  # type: ignore[union-attr]
            )
        )
        if workspace_id is not None:
            statement = statement.where(ActivitySubmission.workspace_id == workspace_id)  # type: ignore[arg-type]
        statement = statement.order_by(ActivitySubmission.reviewed_at.asc()).limit(limit)  # type: ignore[union-attr]
        result = await db.execute(statement)
        return list(result.scalars().all())


submission_ops = SubmissionOperations()
