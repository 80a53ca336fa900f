"""Create workspace, challenge, review and reward ledger schema

Revision ID: a3f1c2d4e5b6
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "a3f1c2d4e5b6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    # Step 1: Users and workspaces
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column(
            "is_admin",
            sa.Boolean,
            nullable=False,
            server_default=sa.text("false"),
            comment="System admin flag for platform operations",
        ),
        sa.Column("rewardstack_participant_id", sa.String(255), nullable=True),
        sa.Column("rewardstack_sync_status", sa.String(20), nullable=False, server_default="NOT_SYNCED"),
        sa.Column("rewardstack_last_sync_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_rewardstack_participant_id", "users", ["rewardstack_participant_id"])

    op.create_table(
        "workspaces",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("self_enrollment_enabled", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("rewardstack_enabled", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column(
            "rewardstack_webhook_secret",
            sa.String,
            nullable=True,
            comment="Fernet-encrypted HMAC secret for partner webhooks",
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_workspaces_slug", "workspaces", ["slug"], unique=True)

    op.create_table(
        "workspace_memberships",
        _id_column(),
        _fk("workspace_id", "workspaces.id"),
        _fk("user_id", "users.id"),
        sa.Column("role", sa.String(20), nullable=False, server_default="PARTICIPANT"),
        sa.Column("is_owner", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default=sa.text("false")),
        _created_at("joined_at"),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_membership"),
    )
    op.create_index("ix_workspace_memberships_workspace_id", "workspace_memberships", ["workspace_id"])
    op.create_index("ix_workspace_memberships_user_id", "workspace_memberships", ["user_id"])

    # Step 2: Challenges, activities, assignments, enrollments
    op.create_table(
        "challenges",
        _id_column(),
        _fk("workspace_id", "workspaces.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String, nullable=True),
        sa.Column("self_enrollment_enabled", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_challenges_workspace_id", "challenges", ["workspace_id"])

    op.create_table(
        "activity_templates",
        _id_column(),
        _fk("workspace_id", "workspaces.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("reward_type", sa.String(20), nullable=False, server_default="points"),
        sa.Column("base_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reward_config", JSONB, nullable=True),
    )
    op.create_index("ix_activity_templates_workspace_id", "activity_templates", ["workspace_id"])

    op.create_table(
        "activities",
        _id_column(),
        _fk("challenge_id", "challenges.id"),
        _fk("template_id", "activity_templates.id", ondelete="RESTRICT"),
        sa.Column("title", sa.String(200), nullable=True),
    )
    op.create_index("ix_activities_challenge_id", "activities", ["challenge_id"])
    op.create_index("ix_activities_template_id", "activities", ["template_id"])

    op.create_table(
        "challenge_assignments",
        _id_column(),
        _fk("challenge_id", "challenges.id"),
        _fk("manager_id", "users.id"),
        _fk("workspace_id", "workspaces.id"),
        sa.Column("assigned_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        _created_at("assigned_at"),
        sa.UniqueConstraint("challenge_id", "manager_id", name="uq_challenge_assignment"),
    )
    op.create_index("ix_challenge_assignments_challenge_id", "challenge_assignments", ["challenge_id"])
    op.create_index("ix_challenge_assignments_manager_id", "challenge_assignments", ["manager_id"])
    op.create_index("ix_challenge_assignments_workspace_id", "challenge_assignments", ["workspace_id"])

    op.create_table(
        "enrollments",
        _id_column(),
        _fk("user_id", "users.id"),
        _fk("challenge_id", "challenges.id"),
        sa.Column("status", sa.String(20), nullable=False, server_default="INVITED"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_enrollment"),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_challenge_id", "enrollments", ["challenge_id"])

    # Step 3: Submissions and the reward ledger (mutual FKs, link added last)
    op.create_table(
        "activity_submissions",
        _id_column(),
        _fk("user_id", "users.id"),
        _fk("activity_id", "activities.id"),
        _fk("challenge_id", "challenges.id"),
        _fk("workspace_id", "workspaces.id"),
        sa.Column("text_content", sa.String, nullable=True),
        sa.Column("evidence_url", sa.String(1000), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        _created_at("submitted_at"),
        sa.Column("reviewed_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.String, nullable=True),
        sa.Column("manager_reviewed_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("manager_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_notes", sa.String, nullable=True),
        sa.Column("reward_issuance_id", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    for column in ("user_id", "activity_id", "challenge_id", "workspace_id", "status"):
        op.create_index(f"ix_activity_submissions_{column}", "activity_submissions", [column])

    op.create_table(
        "reward_issuances",
        _id_column(),
        sa.Column(
            "submission_id",
            UUID(as_uuid=True),
            sa.ForeignKey("activity_submissions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        _fk("user_id", "users.id"),
        _fk("workspace_id", "workspaces.id"),
        _fk("challenge_id", "challenges.id", ondelete="SET NULL", nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer, nullable=True),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("sku_id", sa.String(255), nullable=True),
        sa.Column("description", sa.String, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("issued_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("external_transaction_id", sa.String(255), nullable=True),
        sa.Column("external_adjustment_id", sa.String(255), nullable=True),
        sa.Column("partner_status", sa.String(20), nullable=True),
        sa.Column("partner_webhook_received", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("error_message", sa.String, nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    for column in (
        "user_id",
        "workspace_id",
        "challenge_id",
        "status",
        "external_transaction_id",
        "external_adjustment_id",
    ):
        op.create_index(f"ix_reward_issuances_{column}", "reward_issuances", [column])

    op.create_foreign_key(
        "fk_submission_reward_issuance",
        "activity_submissions",
        "reward_issuances",
        ["reward_issuance_id"],
        ["id"],
        ondelete="SET NULL",
    )

    # Step 4: Webhook audit log and idempotency keys
    op.create_table(
        "rewardstack_webhook_logs",
        _id_column(),
        _fk("workspace_id", "workspaces.id"),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("external_ref", sa.String(255), nullable=True),
        sa.Column("payload", JSONB, nullable=True),
        sa.Column("processed", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.String, nullable=True),
        _created_at("received_at"),
    )
    op.create_index("ix_rewardstack_webhook_logs_workspace_id", "rewardstack_webhook_logs", ["workspace_id"])
    op.create_index("ix_rewardstack_webhook_logs_event_id", "rewardstack_webhook_logs", ["event_id"])
    op.create_index("ix_rewardstack_webhook_logs_external_ref", "rewardstack_webhook_logs", ["external_ref"])
    op.create_index(
        "ix_webhook_logs_workspace_received",
        "rewardstack_webhook_logs",
        ["workspace_id", "received_at"],
    )

    op.create_table(
        "webhook_idempotency_keys",
        sa.Column("event_id", sa.String(255), primary_key=True),
        sa.Column("workspace_id", UUID(as_uuid=True), primary_key=True),
        _created_at("processed_at"),
    )


def downgrade() -> None:
    op.drop_table("webhook_idempotency_keys")
    op.drop_table("rewardstack_webhook_logs")
    op.drop_constraint("fk_submission_reward_issuance", "activity_submissions", type_="foreignkey")
    op.drop_table("reward_issuances")
    op.drop_table("activity_submissions")
    op.drop_table("enrollments")
    op.drop_table("challenge_assignments")
    op.drop_table("activities")
    op.drop_table("activity_templates")
    op.drop_table("challenges")
    op.drop_table("workspace_memberships")
    op.drop_table("workspaces")
    op.drop_table("users")
