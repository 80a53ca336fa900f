"""RewardSTACK webhook audit log and idempotency keys."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class WebhookLog(SQLModel, table=True):
    """
    Append-only audit trail of partner callbacks.

    Never mutates business state by itself. A row is written as received and
    later marked processed, or left unprocessed with the captured error.
    """

    __tablename__ = "rewardstack_webhook_logs"
    __table_args__ = (
        Index("ix_webhook_logs_workspace_received", "workspace_id", "received_at"),
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
    event_id: str | None = Field(default=None, max_length=255, index=True)
    event_type: str = Field(sa_column=Column(String(100), nullable=False))
    # Partner object id (data.id): transaction, adjustment or participant
    external_ref: str | None = Field(default=None, max_length=255, index=True)
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONB))

    processed: bool = Field(default=False, nullable=False)
    processed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    error: str | None = Field(default=None)

    received_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )


class IdempotencyRecord(SQLModel, table=True):
    """(event_id, workspace_id) pairs whose side effects have been applied."""

    __tablename__ = "webhook_idempotency_keys"

    event_id: str = Field(primary_key=True, max_length=255)
    workspace_id: uuid_pkg.UUID = Field(primary_key=True)
    processed_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )


# Response schemas
class WebhookLogRead(SQLModel):
    """Audit log entry as returned to admins."""

    id: uuid_pkg.UUID
    workspace_id: uuid_pkg.UUID
    event_id: str | None
    event_type: str
    external_ref: str | None
    processed: bool
    processed_at: datetime | None
    error: str | None
    received_at: datetime


class WebhookStats(SQLModel):
    """Webhook health over a time window."""

    total: int
    processed: int
    failed: int
    pending: int
    processing_rate: float
    avg_processing_ms: int | None


class WebhookRetryRequest(SQLModel):
    """Body of a retry call. Without log_ids the most recent failures are retried."""

    log_ids: list[uuid_pkg.UUID] | None = None
    limit: int = Field(default=10, ge=1, le=10)
