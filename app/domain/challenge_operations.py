"""Domain operations for Challenge, Activity and ActivityTemplate models."""

import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.challenge import Activity, ActivityTemplate, Challenge


class ChallengeOperations(BaseOperations[Challenge]):
    """Challenge reads used by review and permission gates."""

    def __init__(self) -> None:
        super().__init__(Challenge)

    async def get_activity_template(
        self,
        db: AsyncSession,
        activity_id: uuid_pkg.UUID,
    ) -> ActivityTemplate | None:
        """Template behind an activity; its reward config sizes the ledger entry."""
        statement = (
            select(ActivityTemplate)
            .join(Activity, Activity.template_id == ActivityTemplate.id)  # type: ignore[arg-type]
            .where(Activity.id == activity_id)  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()


challenge_ops = ChallengeOperations()
