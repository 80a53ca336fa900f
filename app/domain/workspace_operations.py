"""Domain operations for Workspace and WorkspaceMembership models."""

import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.encryption import secret_encryption
from app.models.workspace import Workspace, WorkspaceMembership


class WorkspaceOperations:
    """Workspace lookups, membership reads and partner secret handling."""

    async def get(
        self,
        db: AsyncSession,
        id: uuid_pkg.UUID,
    ) -> Workspace | None:
        """Get a workspace by ID."""
        statement = select(Workspace).where(Workspace.id == id)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_slug(
        self,
        db: AsyncSession,
        slug: str,
    ) -> Workspace | None:
        """Get a workspace by its slug."""
        statement = select(Workspace).where(Workspace.slug == slug)  # type: ignore[arg-type]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_membership(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> WorkspaceMembership | None:
        """Get a user's membership in a workspace."""
        statement = select(WorkspaceMembership).where(
            WorkspaceMembership.workspace_id == workspace_id,  # type: ignore[arg-type]
            WorkspaceMembership.user_id == user_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_member_role(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> str | None:
        """Get a user's workspace-wide role, or None if not a member."""
        membership = await self.get_membership(db, workspace_id, user_id)
        return membership.role if membership else None

    def get_webhook_secret(self, workspace: Workspace) -> str | None:
        """Decrypted partner webhook secret, or None when not configured."""
        if not workspace.rewardstack_webhook_secret:
            return None
        return secret_encryption.decrypt(workspace.rewardstack_webhook_secret)

    async def set_webhook_secret(
        self,
        db: AsyncSession,
        workspace: Workspace,
        secret: str | None,
    ) -> Workspace:
        """Store (encrypted) or clear the partner webhook secret."""
        workspace.rewardstack_webhook_secret = (
            secret_encryption.encrypt(secret) if secret else None
        )
        db.add(workspace)
        await db.flush()
        await db.refresh(workspace)
        return workspace

    async def update_rewardstack_config(
        self,
        db: AsyncSession,
        workspace: Workspace,
        enabled: bool,
        webhook_secret: str | None = None,
    ) -> Workspace:
        """Toggle the integration. A non-None secret replaces the stored one ("" clears it)."""
        workspace.rewardstack_enabled = enabled
        if webhook_secret is not None:
            return await self.set_webhook_secret(db, workspace, webhook_secret)
        db.add(workspace)
        await db.flush()
        await db.refresh(workspace)
        return workspace


workspace_ops = WorkspaceOperations()
