"""Reward reconciliation.

Approving a submission creates its ledger entry best-effort: when that write
fails the decision still stands and the submission is left APPROVED with no
linked issuance. This job finds those submissions and creates the missing
entries. It is idempotent because the ledger is keyed on submission_id.

Entries the partner reported FAILED are not retried here; they need an
admin to look at the error and remediate by hand.
"""

import logging
import time
import uuid as uuid_pkg
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.submission_operations import submission_ops
from app.services.submission_review import submission_review

logger = logging.getLogger(__name__)

MAX_SUBMISSIONS_PER_RUN = 200


@dataclass
class ReconciliationReport:
    """Summary of a reconciliation run (for logging/monitoring)."""

    submissions_checked: int = 0
    issuances_created: int = 0
    submissions_skipped: int = 0
    submissions_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class RewardReconciler:
    """Creates ledger entries missing for APPROVED submissions."""

    async def run(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID | None = None,
        limit: int = MAX_SUBMISSIONS_PER_RUN,
    ) -> ReconciliationReport:
        """Reconcile one workspace, or every workspace when workspace_id is None.

        Each submission is handled in its own SAVEPOINT so one bad row does not
        undo the others. The caller commits.
        """
        start = time.monotonic()
        report = ReconciliationReport()

        submissions = await submission_ops.list_approved_without_issuance(
            db, workspace_id=workspace_id, limit=limit
        )
        scope = f"workspace {workspace_id}" if workspace_id else "all workspaces"
        logger.info(f"[reconcile] {len(submissions)} approved submissions without issuance in {scope}")

        for submission in submissions:
            report.submissions_checked += 1
            try:
                async with db.begin_nested():
                    issuance = await submission_review.issue_reward(
                        db, submission, submission.reviewed_by
                    )
            except Exception as e:
                report.submissions_failed += 1
                report.errors.append(f"Submission {submission.id}: {e}")
                logger.exception(f"[reconcile] Submission {submission.id}: issuance failed")
                continue

            if issuance is None:
                report.submissions_skipped += 1
            else:
                report.issuances_created += 1

        report.duration_seconds = round(time.monotonic() - start, 2)
        logger.info(
            f"[reconcile] Completed: {report.issuances_created} created, "
            f"{report.submissions_skipped} skipped, {report.submissions_failed} failed"
        )
        return report


reward_reconciler = RewardReconciler()
