import logging
import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import PartnerSyncStatus, User
from app.models.workspace import WorkspaceMembership

logger = logging.getLogger(__name__)


class UserOperations:
    """User lookups and partner participant sync state."""

    async def get(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> User | None:
        statement = select(User).where(User.id == user_id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def find_partner_participant(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        participant_id: str | None,
        email: str | None,
    ) -> User | None:
        """Find a workspace member by partner participant id, then by email."""
        base = select(User).join(
            WorkspaceMembership,
            WorkspaceMembership.user_id == User.id,  # type: ignore[arg-type]
        ).where(WorkspaceMembership.workspace_id == workspace_id)  # type: ignore[arg-type]

        if participant_id:
            result = await db.execute(
                base.where(User.rewardstack_participant_id == participant_id)  # type: ignore[arg-type]
            )
            user = result.scalar_one_or_none()
            if user:
                return user

        if email:
            result = await db.execute(base.where(User.email == email))  # type: ignore[arg-type]
            return result.scalar_one_or_none()

        return None

    async def mark_partner_synced(
        self,
        db: AsyncSession,
        user: User,
        participant_id: str | None,
    ) -> User:
        user.rewardstack_sync_status = PartnerSyncStatus.SYNCED.value
        user.rewardstack_last_sync_at = datetime.now(UTC)
        if participant_id:
            user.rewardstack_participant_id = participant_id
        db.add(user)
        await db.flush()
        return user

    async def mark_partner_unsynced(self, db: AsyncSession, user: User) -> User:
        user.rewardstack_sync_status = PartnerSyncStatus.NOT_SYNCED.value
        user.rewardstack_participant_id = None
        user.rewardstack_last_sync_at = datetime.now(UTC)
        db.add(user)
        await db.flush()
        return user


user_ops = UserOperations()
