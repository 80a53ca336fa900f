"""Unit tests for the reward reconciliation job."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from app.services.reward_reconciliation import RewardReconciler

from tests.helpers.mock_factories import make_mock_db, make_mock_issuance, make_mock_submission

MODULE = "app.services.reward_reconciliation"


class TestRewardReconciler:
    def setup_method(self):
        self.reconciler = RewardReconciler()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    @patch(f"{MODULE}.submission_review")
    @patch(f"{MODULE}.submission_ops")
    async def test_creates_missing_issuances(self, mock_submission_ops, mock_review):
        reviewer = uuid.uuid4()
        submissions = [make_mock_submission("APPROVED", reviewed_by=reviewer) for _ in range(2)]
        mock_submission_ops.list_approved_without_issuance = AsyncMock(return_value=submissions)
        mock_review.issue_reward = AsyncMock(return_value=make_mock_issuance())

        report = await self.reconciler.run(self.db)

        assert report.submissions_checked == 2
        assert report.issuances_created == 2
        assert report.submissions_failed == 0
        mock_review.issue_reward.assert_any_await(self.db, submissions[0], reviewer)

    @pytest.mark.asyncio
    @patch(f"{MODULE}.submission_review")
    @patch(f"{MODULE}.submission_ops")
    async def test_one_failure_does_not_stop_the_run(self, mock_submission_ops, mock_review):
        bad, good = make_mock_submission("APPROVED"), make_mock_submission("APPROVED")
        mock_submission_ops.list_approved_without_issuance = AsyncMock(return_value=[bad, good])
        mock_review.issue_reward = AsyncMock(side_effect=[RuntimeError("deadlock"), make_mock_issuance()])

        report = await self.reconciler.run(self.db)

        assert report.submissions_failed == 1
        assert report.issuances_created == 1
        assert str(bad.id) in report.errors[0]

    @pytest.mark.asyncio
    @patch(f"{MODULE}.submission_review")
    @patch(f"{MODULE}.submission_ops")
    async def test_submission_without_template_is_skipped(self, mock_submission_ops, mock_review):
        mock_submission_ops.list_approved_without_issuance = AsyncMock(
            return_value=[make_mock_submission("APPROVED")]
        )
        mock_review.issue_reward = AsyncMock(return_value=None)

        report = await self.reconciler.run(self.db)

        assert report.submissions_skipped == 1
        assert report.issuances_created == 0

    @pytest.mark.asyncio
    @patch(f"{MODULE}.submission_review")
    @patch(f"{MODULE}.submission_ops")
    async def test_scoped_to_workspace(self, mock_submission_ops, mock_review):
        workspace_id = uuid.uuid4()
        mock_submission_ops.list_approved_without_issuance = AsyncMock(return_value=[])

        report = await self.reconciler.run(self.db, workspace_id=workspace_id, limit=5)

        mock_submission_ops.list_approved_without_issuance.assert_awaited_once_with(
            self.db, workspace_id=workspace_id, limit=5
        )
        assert report.submissions_checked == 0
        self.db.commit.assert_not_awaited()
