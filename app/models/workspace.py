"""Workspace model - the tenant boundary for challenges, roles and rewards."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, Relationship, SQLModel


class Workspace(SQLModel, table=True):
    """
    Workspace model - one tenant.

    Holds the RewardSTACK integration switch and the shared secret used to
    verify partner webhook signatures (stored encrypted).
    """

    __tablename__ = "workspaces"

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    name: str = Field(max_length=100, nullable=False)
    slug: str = Field(max_length=100, unique=True, index=True, nullable=False)

    # Workspace-level rule: may members enroll themselves into challenges
    self_enrollment_enabled: bool = Field(default=True, nullable=False)

    # RewardSTACK integration
    rewardstack_enabled: bool = Field(default=False, nullable=False)
    rewardstack_webhook_secret: str | None = Field(
        default=None,
        sa_column_kwargs={"comment": "Fernet-encrypted HMAC secret for partner webhooks"},
    )

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    updated_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": text("now()")},
    )

    memberships: list["WorkspaceMembership"] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class WorkspaceRole(str, Enum):
    """Workspace-wide role levels."""

    ADMIN = "ADMIN"  # Full access, including final review and reward administration
    MANAGER = "MANAGER"  # May review submissions workspace-wide
    PARTICIPANT = "PARTICIPANT"  # Enrolls and submits


class WorkspaceMembership(SQLModel, table=True):
    """
    Workspace membership - join table between users and workspaces.

    Exactly one membership per (user, workspace).
    """

    __tablename__ = "workspace_memberships"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_membership"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    workspace_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    user_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    role: str = Field(
        default=WorkspaceRole.PARTICIPANT.value,
        sa_column=Column(String(20), nullable=False, server_default="PARTICIPANT"),
    )
    is_owner: bool = Field(default=False, nullable=False)
    is_primary: bool = Field(default=False, nullable=False)

    joined_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )

    workspace: Optional["Workspace"] = Relationship(back_populates="memberships")


# Request/Response schemas
class WorkspaceRead(SQLModel):
    """Public workspace shape."""

    id: uuid_pkg.UUID
    name: str
    slug: str
    rewardstack_enabled: bool


class RewardStackConfigUpdate(SQLModel):
    """Admin update of the partner integration.

    webhook_secret: omitted keeps the stored secret, "" clears it.
    """

    enabled: bool
    webhook_secret: str | None = Field(default=None, max_length=500)


class RewardStackConfigRead(SQLModel):
    """Integration settings as shown to admins. The secret itself is never returned."""

    enabled: bool
    webhook_secret_configured: bool
