"""Activity submission model and review schemas."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class SubmissionStatus(str, Enum):
    """Review states. APPROVED and REJECTED are terminal."""

    PENDING = "PENDING"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    NEEDS_REVISION = "NEEDS_REVISION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TERMINAL_SUBMISSION_STATUSES = frozenset(
    {SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value}
)


class ReviewAction(str, Enum):
    """Reviewer decision."""

    APPROVE = "approve"
    REJECT = "reject"


class ActivitySubmission(SQLModel, table=True):
    """
    A participant's claim of having completed an activity.

    Owned by its creator until reviewed. Once APPROVED or REJECTED the row is
    immutable apart from the one-time reward_issuance_id linkage.
    """

    __tablename__ = "activity_submissions"

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
    activity_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("activities.id", ondelete="CASCADE"),
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
    workspace_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    text_content: str | None = Field(default=None)
    evidence_url: str | None = Field(default=None, max_length=1000)

    status: str = Field(
        default=SubmissionStatus.PENDING.value,
        sa_column=Column(String(20), nullable=False, server_default="PENDING", index=True),
    )
    submitted_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )

    # Final review
    reviewed_by: uuid_pkg.UUID | None = Field(
        foreign_key="users.id", default=None, nullable=True
    )
    reviewed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    review_notes: str | None = Field(default=None)

    # Manager-level pass
    manager_reviewed_by: uuid_pkg.UUID | None = Field(
        foreign_key="users.id", default=None, nullable=True
    )
    manager_reviewed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    manager_notes: str | None = Field(default=None)

    # Set once, after the ledger entry exists
    reward_issuance_id: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey(
                "reward_issuances.id",
                ondelete="SET NULL",
                use_alter=True,
                name="fk_submission_reward_issuance",
            ),
            nullable=True,
        ),
    )

    updated_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": text("now()")},
    )


# Request/Response schemas
class SubmissionReviewRequest(SQLModel):
    """Body of a review call. action is validated by the review service."""

    action: str | None = None
    notes: str | None = None
    # Older clients send the note as "feedback"
    feedback: str | None = None

    @property
    def review_notes(self) -> str | None:
        return self.notes if self.notes is not None else self.feedback


class SubmissionResubmitRequest(SQLModel):
    """Body of a resubmission. Omitted fields keep their current value."""

    text_content: str | None = None
    evidence_url: str | None = Field(default=None, max_length=2000)


class SubmissionRead(SQLModel):
    """Submission as returned to reviewers."""

    id: uuid_pkg.UUID
    user_id: uuid_pkg.UUID
    activity_id: uuid_pkg.UUID
    challenge_id: uuid_pkg.UUID
    workspace_id: uuid_pkg.UUID
    status: str
    submitted_at: datetime
    reviewed_by: uuid_pkg.UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    manager_reviewed_by: uuid_pkg.UUID | None = None
    manager_reviewed_at: datetime | None = None
    manager_notes: str | None = None
    reward_issuance_id: uuid_pkg.UUID | None = None
