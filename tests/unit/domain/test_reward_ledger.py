"""Unit tests for the reward ledger: reward sizing, creation and webhook settlement."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.exceptions import LedgerEntryNotFoundError
from app.domain.reward_ledger import (
    LedgerLookupKey,
    LedgerReferenceKind,
    RewardLedger,
    derive_reward_spec,
)
from app.models.reward import RewardStatus

from tests.helpers.mock_factories import (
    make_mock_db,
    make_mock_issuance,
    make_mock_submission,
    make_mock_template,
    mock_scalar_result,
    mock_scalars_result,
)


class TestDeriveRewardSpec:
    def test_points_from_base_points(self):
        reward = derive_reward_spec(make_mock_template(reward_type="points", base_points=50))
        assert reward.type == "points"
        assert reward.amount == 50

    def test_points_amount_overrides_base_points(self):
        reward = derive_reward_spec(
            make_mock_template(base_points=50, reward_config={"points_amount": 75})
        )
        assert reward.amount == 75

    def test_sku(self):
        reward = derive_reward_spec(
            make_mock_template(
                reward_type="sku", reward_config={"sku_id": "SKU-42", "product_value": "25"}
            )
        )
        assert reward.type == "sku"
        assert reward.amount == 25
        assert reward.sku_id == "SKU-42"

    def test_monetary_defaults_to_usd(self):
        reward = derive_reward_spec(
            make_mock_template(reward_type="monetary", reward_config={"amount": 10})
        )
        assert reward.amount == 10
        assert reward.currency == "USD"

    def test_monetary_currency(self):
        reward = derive_reward_spec(
            make_mock_template(reward_type="monetary", reward_config={"amount": 5, "currency": "EUR"})
        )
        assert reward.currency == "EUR"

    def test_no_template(self):
        assert derive_reward_spec(None) is None

    def test_description_names_activity(self):
        reward = derive_reward_spec(make_mock_template(name="Morning run", base_points=1))
        assert "Morning run" in reward.description


class TestCreateForSubmission:
    def setup_method(self):
        self.ledger = RewardLedger()
        self.db = make_mock_db()
        self.submission = make_mock_submission(status="APPROVED")
        self.reward = derive_reward_spec(make_mock_template(base_points=50))

    @pytest.mark.asyncio
    async def test_creates_pending_entry(self):
        issuance = make_mock_issuance(submission_id=self.submission.id)
        self.db.execute.side_effect = [
            mock_scalar_result(issuance.id),
            mock_scalar_result(issuance),
        ]

        result, created = await self.ledger.create_for_submission(
            self.db, self.submission, self.reward, uuid.uuid4()
        )

        assert created is True
        assert result is issuance

    @pytest.mark.asyncio
    async def test_conflict_returns_existing_entry(self):
        existing = make_mock_issuance(submission_id=self.submission.id)
        self.db.execute.side_effect = [
            mock_scalar_result(None),
            mock_scalar_result(existing),
        ]

        result, created = await self.ledger.create_for_submission(
            self.db, self.submission, self.reward, uuid.uuid4()
        )

        assert created is False
        assert result is existing


class TestApplyWebhookEvent:
    def setup_method(self):
        self.ledger = RewardLedger()
        self.db = make_mock_db()
        self.workspace_id = uuid.uuid4()
        self.key = LedgerLookupKey(kind=LedgerReferenceKind.TRANSACTION, external_id="txn_1")

    @pytest.mark.asyncio
    async def test_missing_entry_raises_and_logs(self, caplog):
        with patch.object(self.ledger, "find_for_lookup", AsyncMock(return_value=None)):
            with pytest.raises(LedgerEntryNotFoundError) as exc_info:
                await self.ledger.apply_webhook_event(
                    self.db, self.workspace_id, self.key, RewardStatus.ISSUED
                )

        assert exc_info.value.status_code == 404
        assert "txn_1" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["ISSUED", "FAILED"])
    async def test_terminal_entry_is_a_no_op(self, status):
        issuance = make_mock_issuance(status=status)
        with patch.object(self.ledger, "find_for_lookup", AsyncMock(return_value=issuance)):
            update = await self.ledger.apply_webhook_event(
                self.db, self.workspace_id, self.key, RewardStatus.FAILED, error_message="boom"
            )

        assert update.applied is False
        assert update.previous_status == status
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pending_entry_is_settled(self):
        issuance = make_mock_issuance(status="PENDING")
        settled = make_mock_issuance(id=issuance.id, status="ISSUED")
        self.db.execute.return_value = mock_scalar_result(settled)

        with patch.object(self.ledger, "find_for_lookup", AsyncMock(return_value=issuance)):
            update = await self.ledger.apply_webhook_event(
                self.db,
                self.workspace_id,
                self.key,
                RewardStatus.ISSUED,
                external_transaction_id="txn_1",
            )

        assert update.applied is True
        assert update.issuance is settled
        assert update.previous_status == "PENDING"

    @pytest.mark.asyncio
    async def test_progress_event_does_not_settle(self):
        issuance = make_mock_issuance(status="PENDING")
        self.db.execute.return_value = mock_scalar_result(issuance)

        with patch.object(self.ledger, "find_for_lookup", AsyncMock(return_value=issuance)):
            update = await self.ledger.apply_webhook_event(
                self.db, self.workspace_id, self.key, None, partner_status="PROCESSING"
            )

        assert update.applied is False
        self.db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_settlement_is_ignored(self):
        issuance = make_mock_issuance(status="PENDING")
        self.db.execute.return_value = mock_scalar_result(None)

        with patch.object(self.ledger, "find_for_lookup", AsyncMock(return_value=issuance)):
            update = await self.ledger.apply_webhook_event(
                self.db, self.workspace_id, self.key, RewardStatus.ISSUED
            )

        assert update.applied is False


class TestFindForLookup:
    def setup_method(self):
        self.ledger = RewardLedger()
        self.db = make_mock_db()
        self.workspace_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_falls_back_to_issuance_hint(self):
        issuance = make_mock_issuance()
        key = LedgerLookupKey(
            kind=LedgerReferenceKind.TRANSACTION,
            external_id="txn_unknown",
            reward_issuance_id=issuance.id,
        )
        self.db.execute.side_effect = [mock_scalar_result(None), mock_scalar_result(issuance)]

        assert await self.ledger.find_for_lookup(self.db, self.workspace_id, key) is issuance

    @pytest.mark.asyncio
    async def test_nothing_to_look_up(self):
        key = LedgerLookupKey(kind=LedgerReferenceKind.ADJUSTMENT, external_id=None)
        assert await self.ledger.find_for_lookup(self.db, self.workspace_id, key) is None
        self.db.execute.assert_not_awaited()


class TestQueries:
    def setup_method(self):
        self.ledger = RewardLedger()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_status_summary_always_reports_pending(self):
        result = MagicMock()
        result.all.return_value = [("ISSUED", 3)]
        self.db.execute.return_value = result

        summary = await self.ledger.status_summary(self.db, uuid.uuid4())

        assert summary == {"PENDING": 0, "ISSUED": 3, "FAILED": 0}

    @pytest.mark.asyncio
    async def test_list_for_user(self):
        issuances = [make_mock_issuance(), make_mock_issuance()]
        self.db.execute.return_value = mock_scalars_result(issuances)
        assert await self.ledger.list_for_user(self.db, uuid.uuid4(), uuid.uuid4()) == issuances

    def test_external_refs(self):
        issuance = make_mock_issuance(external_transaction_id="txn_1", external_adjustment_id=None)
        assert self.ledger.external_refs(issuance) == ["txn_1"]
