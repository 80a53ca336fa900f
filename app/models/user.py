import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Column, DateTime, String, text
from sqlmodel import Field, SQLModel


class PartnerSyncStatus(str, Enum):
    """Whether the user exists as a participant on the partner platform."""

    NOT_SYNCED = "NOT_SYNCED"
    SYNCED = "SYNCED"


class User(SQLModel, table=True):
    """
    User model - mirrors Supabase auth.users.

    The id comes from Supabase Auth. User records are created
    on first API call after authentication.
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        primary_key=True,
        index=True,
        nullable=False,
        description="UUID from Supabase auth.users",
    )
    email: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=100)
    avatar_url: str | None = Field(default=None, max_length=500)

    # Platform-wide admin flag (bypasses workspace role checks)
    is_admin: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={"comment": "System admin flag for platform operations"},
    )

    # RewardSTACK participant linkage, maintained by participant.* webhooks
    rewardstack_participant_id: str | None = Field(default=None, max_length=255, index=True)
    rewardstack_sync_status: str = Field(
        default=PartnerSyncStatus.NOT_SYNCED.value,
        sa_column=Column(String(20), nullable=False, server_default="NOT_SYNCED"),
    )
    rewardstack_last_sync_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
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
