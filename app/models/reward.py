"""Reward ledger model - one issuance per approved submission."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class RewardType(str, Enum):
    """How a reward is fulfilled."""

    POINTS = "points"
    SKU = "sku"
    MONETARY = "monetary"


class RewardStatus(str, Enum):
    """Ledger status. ISSUED and FAILED are terminal and only set by webhooks."""

    PENDING = "PENDING"
    ISSUED = "ISSUED"
    FAILED = "FAILED"


TERMINAL_REWARD_STATUSES = frozenset({RewardStatus.ISSUED.value, RewardStatus.FAILED.value})


class PartnerStatus(str, Enum):
    """Partner-side progress as last reported (informational)."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RewardIssuance(SQLModel, table=True):
    """
    Reward ledger entry.

    Created PENDING when a submission is approved. The terminal status is
    written only by a verified partner webhook.
    """

    __tablename__ = "reward_issuances"

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    # UNIQUE: at most one issuance per submission
    submission_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("activity_submissions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
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
    workspace_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    challenge_id: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("challenges.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )

    type: str = Field(sa_column=Column(String(20), nullable=False))
    amount: int | None = Field(default=None)
    currency: str | None = Field(default=None, max_length=10)
    sku_id: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None)

    status: str = Field(
        default=RewardStatus.PENDING.value,
        sa_column=Column(String(20), nullable=False, server_default="PENDING", index=True),
    )
    issued_by: uuid_pkg.UUID | None = Field(
        foreign_key="users.id", default=None, nullable=True
    )
    issued_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    # Partner references
    external_transaction_id: str | None = Field(default=None, max_length=255, index=True)
    external_adjustment_id: str | None = Field(default=None, max_length=255, index=True)
    partner_status: str | None = Field(default=None, max_length=20)
    partner_webhook_received: bool = Field(default=False, nullable=False)
    # Admin-only detail; never shown to participants
    error_message: str | None = Field(default=None)

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
class RewardIssuanceRead(SQLModel):
    """Admin view of a ledger entry."""

    id: uuid_pkg.UUID
    submission_id: uuid_pkg.UUID
    user_id: uuid_pkg.UUID
    workspace_id: uuid_pkg.UUID
    challenge_id: uuid_pkg.UUID | None
    type: str
    amount: int | None
    currency: str | None
    sku_id: str | None
    status: str
    issued_by: uuid_pkg.UUID | None
    issued_at: datetime | None
    external_transaction_id: str | None
    external_adjustment_id: str | None
    partner_status: str | None
    error_message: str | None
    created_at: datetime


class ParticipantRewardRead(SQLModel):
    """Participant view: ledger status only, no partner-side detail."""

    id: uuid_pkg.UUID
    challenge_id: uuid_pkg.UUID | None
    type: str
    amount: int | None
    currency: str | None
    sku_id: str | None
    status: str
    issued_at: datetime | None
    created_at: datetime
