"""Unit tests for SubmissionOperations queries."""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.domain.submission_operations import SubmissionOperations

from tests.helpers.mock_factories import make_mock_db, make_mock_submission


def _compiled_sql(db) -> str:
    statement = db.execute.await_args.args[0]
    return str(statement.compile(dialect=postgresql.dialect()))


class TestListApprovedWithoutIssuance:
    def setup_method(self):
        self.ops = SubmissionOperations()
        self.db = make_mock_db()
        result = MagicMock()
        result.scalars.return_value.all.return_value = [make_mock_submission("APPROVED")]
        self.db.execute.return_value = result

    @pytest.mark.asyncio
    async def test_only_submissions_with_a_reward_template_are_queued(self):
        """Reward-less approvals never come back, so they cannot crowd out real gaps."""
        submissions = await self.ops.list_approved_without_issuance(self.db, limit=200)

        assert len(submissions) == 1
        sql = _compiled_sql(self.db)
        assert "JOIN activities ON activities.id = activity_submissions.activity_id" in sql
        assert "JOIN activity_templates ON activity_templates.id = activities.template_id" in sql
        assert "activity_submissions.reward_issuance_id IS NULL" in sql
        assert "ORDER BY activity_submissions.reviewed_at ASC" in sql

    @pytest.mark.asyncio
    async def test_scoped_to_workspace_when_given(self):
        await self.ops.list_approved_without_issuance(self.db, workspace_id=uuid.uuid4())

        assert "activity_submissions.workspace_id = " in _compiled_sql(self.db)
