"""Submission review state machine.

    PENDING ──manager pass──> MANAGER_APPROVED | NEEDS_REVISION
    PENDING | MANAGER_APPROVED ──final decision──> APPROVED | REJECTED
    NEEDS_REVISION ──owner resubmits──> PENDING

APPROVED and REJECTED are terminal. Every transition is gated, in order, by:
submission lookup (scoped to the workspace), the self-review check, fresh
challenge permissions, and the current-state check. The status change itself
is a compare-and-swap so concurrent reviewers are linearized per submission.

Approval creates the reward ledger entry as a best-effort side effect: if that
fails the decision still stands and the reconciliation job picks it up later.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.permissions import ensure_can_review, ensure_not_self_review
from app.core.roles import has_minimum_role
from app.domain.challenge_assignment_operations import challenge_assignment_ops
from app.domain.challenge_operations import challenge_ops
from app.domain.reward_ledger import derive_reward_spec, reward_ledger
from app.domain.role_operations import role_ops
from app.domain.submission_operations import submission_ops
from app.models.reward import RewardIssuance
from app.models.submission import (
    TERMINAL_SUBMISSION_STATUSES,
    ActivitySubmission,
    ReviewAction,
    SubmissionStatus,
)
from app.models.workspace import WorkspaceRole

logger = logging.getLogger(__name__)

ALREADY_REVIEWED_MESSAGE = "Submission has already been reviewed"
INVALID_ACTION_MESSAGE = "Invalid action. Must be 'approve' or 'reject'"

# States a final decision may start from
FINAL_REVIEWABLE = (SubmissionStatus.PENDING.value, SubmissionStatus.MANAGER_APPROVED.value)
# States the manager-level pass may start from
MANAGER_REVIEWABLE = (SubmissionStatus.PENDING.value,)


@dataclass
class ReviewOutcome:
    """Result of a review call."""

    submission: ActivitySubmission
    reward_issuance: RewardIssuance | None = None
    message: str = ""


def parse_action(action: str | None) -> ReviewAction:
    try:
        return ReviewAction((action or "").strip().lower())
    except ValueError:
        raise ValidationError(INVALID_ACTION_MESSAGE) from None


class SubmissionReviewService:
    """Gated transitions over ActivitySubmission plus ledger entry creation."""

    async def _load_and_authorize(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        submission_id: uuid_pkg.UUID,
        reviewer_id: uuid_pkg.UUID,
        challenge_id: uuid_pkg.UUID | None,
    ) -> ActivitySubmission:
        submission = await submission_ops.get_scoped(db, workspace_id, submission_id, challenge_id)
        if submission is None:
            raise NotFoundError("Submission")

        ensure_not_self_review(submission.user_id, reviewer_id)

        # Resolved fresh from the submission's own challenge on every call
        permissions = await role_ops.resolve(
            db, reviewer_id, workspace_id, submission.challenge_id
        )
        ensure_can_review(permissions, submission.user_id, reviewer_id)
        return submission

    async def review(
        self,
        db: AsyncSession,
        *,
        workspace_id: uuid_pkg.UUID,
        submission_id: uuid_pkg.UUID,
        reviewer_id: uuid_pkg.UUID,
        action: str | None,
        notes: str | None = None,
        challenge_id: uuid_pkg.UUID | None = None,
    ) -> ReviewOutcome:
        """
        Final decision: approve -> APPROVED, reject -> REJECTED.

        Raises:
            ValidationError: unknown action
            NotFoundError: submission not in this workspace/challenge
            AuthorizationError: self-review, or no approve capability on the challenge
            ConflictError: submission already reviewed (or awaiting revision)
        """
        decision = parse_action(action)
        submission = await self._load_and_authorize(
            db, workspace_id, submission_id, reviewer_id, challenge_id
        )

        if submission.status in TERMINAL_SUBMISSION_STATUSES:
            raise ConflictError(ALREADY_REVIEWED_MESSAGE)
        if submission.status not in FINAL_REVIEWABLE:
            raise ConflictError("Submission is awaiting revision by the participant")

        new_status = (
            SubmissionStatus.APPROVED if decision == ReviewAction.APPROVE else SubmissionStatus.REJECTED
        )
        updated = await submission_ops.transition(
            db,
            submission.id,
            FINAL_REVIEWABLE,
            {
                "status": new_status.value,
                "reviewed_by": reviewer_id,
                "reviewed_at": datetime.now(UTC),
                "review_notes": notes,
            },
        )
        if updated is None:
            # Another reviewer won the race
            raise ConflictError(ALREADY_REVIEWED_MESSAGE)

        logger.info(f"Submission {updated.id} {new_status.value} by {reviewer_id}")

        issuance = None
        if new_status == SubmissionStatus.APPROVED:
            issuance = await self._issue_reward_best_effort(db, updated, reviewer_id)

        return ReviewOutcome(
            submission=updated,
            reward_issuance=issuance,
            message="Submission approved" if decision == ReviewAction.APPROVE else "Submission rejected",
        )

    async def manager_review(
        self,
        db: AsyncSession,
        *,
        workspace_id: uuid_pkg.UUID,
        submission_id: uuid_pkg.UUID,
        reviewer_id: uuid_pkg.UUID,
        action: str | None,
        notes: str | None = None,
    ) -> ReviewOutcome:
        """Manager-level pass: approve -> MANAGER_APPROVED, reject -> NEEDS_REVISION."""
        decision = parse_action(action)
        submission = await self._load_and_authorize(
            db, workspace_id, submission_id, reviewer_id, None
        )

        if submission.status in TERMINAL_SUBMISSION_STATUSES:
            raise ConflictError(ALREADY_REVIEWED_MESSAGE)
        if submission.status not in MANAGER_REVIEWABLE:
            raise ConflictError("Submission is not awaiting manager review")

        new_status = (
            SubmissionStatus.MANAGER_APPROVED
            if decision == ReviewAction.APPROVE
            else SubmissionStatus.NEEDS_REVISION
        )
        updated = await submission_ops.transition(
            db,
            submission.id,
            MANAGER_REVIEWABLE,
            {
                "status": new_status.value,
                "manager_reviewed_by": reviewer_id,
                "manager_reviewed_at": datetime.now(UTC),
                "manager_notes": notes,
            },
        )
        if updated is None:
            raise ConflictError("Submission is not awaiting manager review")

        logger.info(f"Submission {updated.id} {new_status.value} by manager {reviewer_id}")
        return ReviewOutcome(
            submission=updated,
            message=(
                "Submission approved for final review"
                if decision == ReviewAction.APPROVE
                else "Revision requested"
            ),
        )

    async def resubmit(
        self,
        db: AsyncSession,
        *,
        workspace_id: uuid_pkg.UUID,
        submission_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        text_content: str | None = None,
        evidence_url: str | None = None,
    ) -> ActivitySubmission:
        """Owner sends a NEEDS_REVISION submission back to PENDING."""
        submission = await submission_ops.get_scoped(db, workspace_id, submission_id)
        if submission is None:
            raise NotFoundError("Submission")
        if submission.user_id != user_id:
            raise AuthorizationError("You can only resubmit your own submission")
        if submission.status != SubmissionStatus.NEEDS_REVISION.value:
            raise ConflictError("Only submissions needing revision can be resubmitted")

        values: dict = {
            "status": SubmissionStatus.PENDING.value,
            "submitted_at": datetime.now(UTC),
        }
        if text_content is not None:
            values["text_content"] = text_content
        if evidence_url is not None:
            values["evidence_url"] = evidence_url

        updated = await submission_ops.transition(
            db, submission.id, (SubmissionStatus.NEEDS_REVISION.value,), values
        )
        if updated is None:
            raise ConflictError("Only submissions needing revision can be resubmitted")
        return updated

    async def manager_queue(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        manager_id: uuid_pkg.UUID,
    ) -> list[ActivitySubmission]:
        """PENDING submissions the user may review.

        Admins, and MANAGERs without assignments, see every challenge; anyone
        holding assignments sees only the challenges assigned to them.
        """
        role = await role_ops.get_workspace_role(db, workspace_id, manager_id)
        if role is None:
            raise AuthorizationError("You are not a member of this workspace")

        challenge_ids = await challenge_assignment_ops.list_challenge_ids_for_manager(
            db, workspace_id, manager_id
        )
        workspace_wide = has_minimum_role(role, WorkspaceRole.ADMIN) or (
            role == WorkspaceRole.MANAGER.value and not challenge_ids
        )
        submissions = await submission_ops.list_pending(
            db, workspace_id, None if workspace_wide else challenge_ids
        )
        return [s for s in submissions if s.user_id != manager_id]

    async def issue_reward(
        self,
        db: AsyncSession,
        submission: ActivitySubmission,
        issued_by: uuid_pkg.UUID | None,
    ) -> RewardIssuance | None:
        """
        Create (or find) the ledger entry for an approved submission and link it.

        Idempotent: the ledger insert is keyed on submission_id and the link
        is only written while reward_issuance_id is NULL. Returns None when
        the activity carries no reward configuration.
        """
        template = await challenge_ops.get_activity_template(db, submission.activity_id)
        reward = derive_reward_spec(template)
        if reward is None:
            logger.warning(f"Submission {submission.id} has no activity template; no reward issued")
            return None

        issuance, _created = await reward_ledger.create_for_submission(
            db, submission, reward, issued_by
        )
        if await submission_ops.link_reward_issuance(db, submission.id, issuance.id):
            submission.reward_issuance_id = issuance.id
        return issuance

    async def _issue_reward_best_effort(
        self,
        db: AsyncSession,
        submission: ActivitySubmission,
        issued_by: uuid_pkg.UUID,
    ) -> RewardIssuance | None:
        # SAVEPOINT: a failure rolls back the ledger write only, never the decision
        try:
            async with db.begin_nested():
                return await self.issue_reward(db, submission, issued_by)
        except Exception:
            logger.exception(
                f"Failed to create reward issuance for approved submission {submission.id}; "
                f"left for reconciliation"
            )
            return None


submission_review = SubmissionReviewService()
