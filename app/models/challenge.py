"""Challenge models - challenges, activities, manager assignments and enrollments."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class Challenge(SQLModel, table=True):
    """A time-boxed collection of activities inside one workspace."""

    __tablename__ = "challenges"

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
    title: str = Field(max_length=200, nullable=False)
    description: str | None = Field(default=None)
    self_enrollment_enabled: bool = Field(default=True, nullable=False)
    starts_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    ends_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )


class ActivityTemplate(SQLModel, table=True):
    """
    Reusable activity definition with its reward configuration.

    reward_config keys by reward type:
    - points: points_amount (falls back to base_points)
    - sku: sku_id, product_value
    - monetary: amount, currency
    """

    __tablename__ = "activity_templates"

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
    name: str = Field(max_length=200, nullable=False)
    reward_type: str = Field(
        default="points",
        sa_column=Column(String(20), nullable=False, server_default="points"),
    )
    base_points: int = Field(default=0, nullable=False)
    reward_config: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONB))


class Activity(SQLModel, table=True):
    """An activity template placed into a challenge."""

    __tablename__ = "activities"

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    challenge_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("challenges.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    template_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("activity_templates.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
    )
    title: str | None = Field(default=None, max_length=200)


class ChallengeAssignment(SQLModel, table=True):
    """
    Challenge-scoped manager assignment.

    Grants review capability over one challenge regardless of the
    manager's workspace-wide role.
    """

    __tablename__ = "challenge_assignments"
    __table_args__ = (
        UniqueConstraint("challenge_id", "manager_id", name="uq_challenge_assignment"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    challenge_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("challenges.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    manager_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    workspace_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    assigned_by: uuid_pkg.UUID | None = Field(
        foreign_key="users.id", default=None, nullable=True
    )
    assigned_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )


class EnrollmentStatus(str, Enum):
    """Lifecycle of a user's participation in a challenge."""

    INVITED = "INVITED"
    ENROLLED = "ENROLLED"
    WITHDRAWN = "WITHDRAWN"
    COMPLETED = "COMPLETED"


class Enrollment(SQLModel, table=True):
    """(user, challenge) participation record."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_enrollment"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    user_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    challenge_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("challenges.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    status: str = Field(
        default=EnrollmentStatus.INVITED.value,
        sa_column=Column(String(20), nullable=False, server_default="INVITED"),
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


# Request/Response schemas
class ChallengeAssignmentCreate(SQLModel):
    """Schema for assigning a manager to a challenge."""

    manager_id: uuid_pkg.UUID


class ChallengeAssignmentRead(SQLModel):
    """Manager assignment as returned by the API."""

    id: uuid_pkg.UUID
    challenge_id: uuid_pkg.UUID
    manager_id: uuid_pkg.UUID
    workspace_id: uuid_pkg.UUID
    assigned_by: uuid_pkg.UUID | None
    assigned_at: datetime


class EnrollmentRead(SQLModel):
    """Enrollment as returned by the API."""

    id: uuid_pkg.UUID
    user_id: uuid_pkg.UUID
    challenge_id: uuid_pkg.UUID
    status: str
    created_at: datetime
