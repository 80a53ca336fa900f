import uuid as uuid_pkg
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseOperations(Generic[ModelType]):
    """Base CRUD operations for workspace-scoped models."""

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> ModelType | None:
        """Get a single record by ID."""
        statement = select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_in_workspace(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        id: uuid_pkg.UUID,
    ) -> ModelType | None:
        """Get a record by ID, scoped to a workspace."""
        statement = select(self.model).where(
            self.model.id == id,  # type: ignore[attr-defined]
            self.model.workspace_id == workspace_id,  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()
