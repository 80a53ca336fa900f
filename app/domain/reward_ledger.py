"""Reward Ledger - one issuance per approved submission.

PENDING is the only state this service writes on its own. ISSUED and FAILED
are set exclusively from verified partner webhooks via apply_webhook_event(),
and once set they never change again.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import LedgerEntryNotFoundError
from app.models.challenge import ActivityTemplate
from app.models.reward import (
    TERMINAL_REWARD_STATUSES,
    RewardIssuance,
    RewardStatus,
    RewardType,
)
from app.models.submission import ActivitySubmission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardSpec:
    """Reward sizing derived from an activity template."""

    type: str
    amount: int
    currency: str | None = None
    sku_id: str | None = None
    description: str | None = None


def _as_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(float(value))


def derive_reward_spec(template: ActivityTemplate | None) -> RewardSpec | None:
    """
    Size a reward from the template's reward configuration.

    - points: reward_config.points_amount, else base_points
    - sku: reward_config.product_value, with reward_config.sku_id
    - monetary: reward_config.amount, with reward_config.currency

    Returns None when the activity has no template (nothing to issue).
    """
    if template is None:
        return None

    config = template.reward_config or {}
    reward_type = template.reward_type or RewardType.POINTS.value
    description = f"Reward for completing activity: {template.name}"

    if reward_type == RewardType.SKU.value:
        return RewardSpec(
            type=reward_type,
            amount=_as_int(config.get("product_value")),
            sku_id=config.get("sku_id"),
            description=description,
        )
    if reward_type == RewardType.MONETARY.value:
        return RewardSpec(
            type=reward_type,
            amount=_as_int(config.get("amount")),
            currency=config.get("currency") or "USD",
            description=description,
        )

    points = config.get("points_amount") or template.base_points
    return RewardSpec(
        type=RewardType.POINTS.value,
        amount=_as_int(points),
        description=description,
    )


class LedgerReferenceKind(str, Enum):
    """Which partner object a webhook refers to."""

    TRANSACTION = "transaction"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class LedgerLookupKey:
    """
    How a partner event finds its ledger entry.

    external_id is the partner transaction/adjustment id. reward_issuance_id
    is the local id echoed back in event metadata, used when the partner id
    has not been recorded yet.
    """

    kind: LedgerReferenceKind
    external_id: str | None
    reward_issuance_id: uuid_pkg.UUID | None = None

    def describe(self) -> str:
        parts = [f"{self.kind.value} {self.external_id or '-'}"]
        if self.reward_issuance_id:
            parts.append(f"issuance {self.reward_issuance_id}")
        return ", ".join(parts)


@dataclass
class LedgerUpdate:
    """Result of applying one partner event."""

    issuance: RewardIssuance
    applied: bool
    previous_status: str


class RewardLedger:
    """Creation and webhook-driven settlement of reward issuances."""

    async def get_scoped(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        issuance_id: uuid_pkg.UUID,
    ) -> RewardIssuance | None:
        statement = select(RewardIssuance).where(
            RewardIssuance.id == issuance_id,  # type: ignore[arg-type]
            RewardIssuance.workspace_id == workspace_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_submission(
        self,
        db: AsyncSession,
        submission_id: uuid_pkg.UUID,
    ) -> RewardIssuance | None:
        statement = select(RewardIssuance).where(
            RewardIssuance.submission_id == submission_id  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def create_for_submission(
        self,
        db: AsyncSession,
        submission: ActivitySubmission,
        reward: RewardSpec,
        issued_by: uuid_pkg.UUID | None,
    ) -> tuple[RewardIssuance, bool]:
        """
        Create the PENDING entry for an approved submission.

        INSERT ... ON CONFLICT (submission_id) DO NOTHING makes this safe to
        call repeatedly: a retry returns the existing entry with created=False.
        """
        now = datetime.now(UTC)
        statement = (
            insert(RewardIssuance)
            .values(
                id=uuid_pkg.uuid4(),
                submission_id=submission.id,
                user_id=submission.user_id,
                workspace_id=submission.workspace_id,
                challenge_id=submission.challenge_id,
                type=reward.type,
                amount=reward.amount,
                currency=reward.currency,
                sku_id=reward.sku_id,
                description=reward.description,
                status=RewardStatus.PENDING.value,
                issued_by=issued_by,
                partner_webhook_received=False,
                created_at=now,
            )
            .on_conflict_do_nothing(index_elements=["submission_id"])
            .returning(RewardIssuance.id)
        )
        result = await db.execute(statement)
        new_id = result.scalar_one_or_none()

        issuance = await self.get_by_submission(db, submission.id)
        if issuance is None:
            raise RuntimeError(f"Reward issuance for submission {submission.id} vanished after insert")

        if new_id is None:
            logger.info(f"Reward issuance already exists for submission {submission.id}")
            return issuance, False

        logger.info(
            f"Created {reward.type} reward issuance {issuance.id} "
            f"(amount={reward.amount}) for submission {submission.id}"
        )
        return issuance, True

    async def find_for_lookup(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        key: LedgerLookupKey,
    ) -> RewardIssuance | None:
        """Find by partner reference first, then by the local id hint."""
        if key.external_id:
            column = (
                RewardIssuance.external_adjustment_id
                if key.kind == LedgerReferenceKind.ADJUSTMENT
                else RewardIssuance.external_transaction_id
            )
            result = await db.execute(
                select(RewardIssuance).where(
                    RewardIssuance.workspace_id == workspace_id,  # type: ignore[arg-type]
                    column == key.external_id,  # type: ignore[arg-type]
                )
            )
            issuance = result.scalar_one_or_none()
            if issuance:
                return issuance

        if key.reward_issuance_id:
            return await self.get_scoped(db, workspace_id, key.reward_issuance_id)

        return None

    def _reference_values(self, issuance: RewardIssuance, key: LedgerLookupKey) -> dict[str, Any]:
        values: dict[str, Any] = {"partner_webhook_received": True}
        if key.external_id:
            if key.kind == LedgerReferenceKind.ADJUSTMENT and not issuance.external_adjustment_id:
                values["external_adjustment_id"] = key.external_id
            if key.kind == LedgerReferenceKind.TRANSACTION and not issuance.external_transaction_id:
                values["external_transaction_id"] = key.external_id
        return values

    async def apply_webhook_event(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        lookup_key: LedgerLookupKey,
        new_status: RewardStatus | None,
        external_transaction_id: str | None = None,
        error_message: str | None = None,
        partner_status: str | None = None,
    ) -> LedgerUpdate:
        """
        Apply a partner event to its ledger entry.

        new_status=None (or PENDING) records partner progress only. ISSUED and
        FAILED settle the entry. An entry that is already settled is left
        untouched, so replays are harmless.

        Raises:
            LedgerEntryNotFoundError: no entry matches the lookup key
        """
        issuance = await self.find_for_lookup(db, workspace_id, lookup_key)
        if issuance is None:
            logger.error(
                f"No reward issuance found in workspace {workspace_id} for {lookup_key.describe()}"
            )
            raise LedgerEntryNotFoundError(lookup_key.describe())

        previous_status = issuance.status
        if previous_status in TERMINAL_REWARD_STATUSES:
            logger.info(
                f"Reward issuance {issuance.id} already {previous_status}; "
                f"ignoring {lookup_key.kind.value} event"
            )
            return LedgerUpdate(issuance=issuance, applied=False, previous_status=previous_status)

        values = self._reference_values(issuance, lookup_key)
        if external_transaction_id and not issuance.external_transaction_id:
            values["external_transaction_id"] = external_transaction_id
        if partner_status:
            values["partner_status"] = partner_status

        settling = new_status in (RewardStatus.ISSUED, RewardStatus.FAILED)
        if new_status == RewardStatus.ISSUED:
            values.update(status=RewardStatus.ISSUED.value, issued_at=datetime.now(UTC), error_message=None)
        elif new_status == RewardStatus.FAILED:
            values.update(status=RewardStatus.FAILED.value, error_message=error_message or "Unknown error")

        # Conditional on PENDING so two concurrent deliveries cannot both settle it
        statement = (
            update(RewardIssuance)
            .where(
                RewardIssuance.id == issuance.id,  # type: ignore[arg-type]
                RewardIssuance.status == RewardStatus.PENDING.value,  # type: ignore[arg-type]
            )
            .values(**values)
            .returning(RewardIssuance)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        result = await db.execute(statement)
        updated = result.scalar_one_or_none()

        if updated is None:
            logger.info(f"Reward issuance {issuance.id} settled concurrently; event ignored")
            return LedgerUpdate(issuance=issuance, applied=False, previous_status=previous_status)

        if settling:
            logger.info(f"Reward issuance {updated.id}: {previous_status} -> {updated.status}")
        return LedgerUpdate(issuance=updated, applied=settling, previous_status=previous_status)

    async def list_for_workspace(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        status: RewardStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[RewardIssuance]:
        statement = select(RewardIssuance).where(
            RewardIssuance.workspace_id == workspace_id  # type: ignore[arg-type]
        )
        if status is not None:
            statement = statement.where(RewardIssuance.status == status.value)  # type: ignore[arg-type]
        statement = (
            statement.order_by(RewardIssuance.created_at.desc())  # type: ignore[attr-defined]
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def list_for_user(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> list[RewardIssuance]:
        statement = (
            select(RewardIssuance)
            .where(
                RewardIssuance.workspace_id == workspace_id,  # type: ignore[arg-type]
                RewardIssuance.user_id == user_id,  # type: ignore[arg-type]
            )
            .order_by(RewardIssuance.created_at.desc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def status_summary(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
    ) -> dict[str, int]:
        """Entry counts per status. PENDING is always reported, even when zero."""
        statement = (
            select(RewardIssuance.status, func.count())
            .where(RewardIssuance.workspace_id == workspace_id)  # type: ignore[arg-type]
            .group_by(RewardIssuance.status)
        )
        result = await db.execute(statement)
        summary = {status.value: 0 for status in RewardStatus}
        for status, count in result.all():
            summary[status] = count
        return summary

    def external_refs(self, issuance: RewardIssuance) -> list[str]:
        """Partner ids this entry is known by."""
        return [
            ref
            for ref in (issuance.external_transaction_id, issuance.external_adjustment_id)
            if ref
        ]


reward_ledger = RewardLedger()
