"""Submission review endpoints: final review, manager pass, resubmission, queue."""

import logging
import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import WorkspaceContext, require_workspace_member
from app.core.database import get_db
from app.models.reward import RewardIssuance, RewardIssuanceRead
from app.models.submission import (
    ActivitySubmission,
    SubmissionRead,
    SubmissionResubmitRequest,
    SubmissionReviewRequest,
)
from app.services.submission_review import ReviewOutcome, submission_review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{slug}", tags=["submissions"])


def _submission_to_dict(submission: ActivitySubmission) -> dict[str, Any]:
    return SubmissionRead.model_validate(submission).model_dump(mode="json")


def _issuance_to_dict(issuance: RewardIssuance | None) -> dict[str, Any] | None:
    if issuance is None:
        return None
    return RewardIssuanceRead.model_validate(issuance).model_dump(mode="json")


def _outcome_to_dict(outcome: ReviewOutcome) -> dict[str, Any]:
    return {
        "submission": _submission_to_dict(outcome.submission),
        "rewardIssuance": _issuance_to_dict(outcome.reward_issuance),
        "message": outcome.message,
    }


@router.post("/challenges/{challenge_id}/submissions/{submission_id}/review")
async def review_submission(
    challenge_id: uuid_pkg.UUID,
    submission_id: uuid_pkg.UUID,
    data: SubmissionReviewRequest,
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Approve or reject a submission. Approval creates the reward ledger entry."""
    outcome = await submission_review.review(
        db,
        workspace_id=context.workspace.id,
        submission_id=submission_id,
        reviewer_id=context.user.id,
        action=data.action,
        notes=data.review_notes,
        challenge_id=challenge_id,
    )
    return _outcome_to_dict(outcome)


@router.post("/submissions/{submission_id}/manager-review")
async def manager_review_submission(
    submission_id: uuid_pkg.UUID,
    data: SubmissionReviewRequest,
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Manager-level pass: approve for final review or request a revision."""
    outcome = await submission_review.manager_review(
        db,
        workspace_id=context.workspace.id,
        submission_id=submission_id,
        reviewer_id=context.user.id,
        action=data.action,
        notes=data.review_notes,
    )
    return _outcome_to_dict(outcome)


@router.post("/submissions/{submission_id}/resubmit")
async def resubmit_submission(
    submission_id: uuid_pkg.UUID,
    data: SubmissionResubmitRequest,
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Send a submission that needs revision back for review."""
    submission = await submission_review.resubmit(
        db,
        workspace_id=context.workspace.id,
        submission_id=submission_id,
        user_id=context.user.id,
        text_content=data.text_content,
        evidence_url=data.evidence_url,
    )
    return {"submission": _submission_to_dict(submission), "message": "Submission resubmitted"}


@router.get("/manager/queue")
async def get_manager_queue(
    context: WorkspaceContext = Depends(require_workspace_member),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Pending submissions the caller may review."""
    submissions = await submission_review.manager_queue(db, context.workspace.id, context.user.id)
    return {
        "submissions": [_submission_to_dict(s) for s in submissions],
        "total": len(submissions),
    }
