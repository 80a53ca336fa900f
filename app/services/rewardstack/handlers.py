"""Handlers for verified partner events, one per EventCategory."""

import logging
import uuid as uuid_pkg
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnsupportedEventError
from app.domain.reward_ledger import LedgerLookupKey, LedgerReferenceKind, reward_ledger
from app.domain.user_operations import user_ops
from app.models.reward import PartnerStatus, RewardStatus
from app.services.rewardstack.events import EventAction, EventCategory, PartnerWebhookEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[AsyncSession, uuid_pkg.UUID, PartnerWebhookEvent], Awaitable[str]]


def _unsupported(event: PartnerWebhookEvent) -> UnsupportedEventError:
    return UnsupportedEventError(f"Unsupported event type: {event.type}")


def _partner_status(raw: str | None) -> str:
    """Partner-reported status, falling back to PROCESSING for anything unrecognized."""
    try:
        return PartnerStatus((raw or "").upper()).value
    except ValueError:
        return PartnerStatus.PROCESSING.value


async def _apply_to_ledger(
    db: AsyncSession,
    workspace_id: uuid_pkg.UUID,
    event: PartnerWebhookEvent,
    kind: LedgerReferenceKind,
) -> str:
    """Shared transaction/adjustment handling: map the action onto the ledger."""
    key = LedgerLookupKey(
        kind=kind,
        external_id=event.data.id,
        reward_issuance_id=event.data.reward_issuance_hint,
    )
    external_transaction_id = event.data.id if kind == LedgerReferenceKind.TRANSACTION else None

    if event.action == EventAction.CREATED:
        new_status, partner_status = None, PartnerStatus.PROCESSING.value
    elif event.action == EventAction.UPDATED:
        new_status, partner_status = None, _partner_status(event.data.status)
    elif event.action == EventAction.COMPLETED:
        new_status, partner_status = RewardStatus.ISSUED, PartnerStatus.COMPLETED.value
    elif event.action == EventAction.FAILED:
        new_status, partner_status = RewardStatus.FAILED, PartnerStatus.FAILED.value
    else:
        raise _unsupported(event)

    result = await reward_ledger.apply_webhook_event(
        db,
        workspace_id,
        key,
        new_status,
        external_transaction_id=external_transaction_id,
        error_message=event.data.error_message,
        partner_status=partner_status,
    )
    outcome = "applied" if result.applied else "recorded"
    return f"{event.type} {outcome} on reward issuance {result.issuance.id}"


async def handle_transaction_event(
    db: AsyncSession,
    workspace_id: uuid_pkg.UUID,
    event: PartnerWebhookEvent,
) -> str:
    return await _apply_to_ledger(db, workspace_id, event, LedgerReferenceKind.TRANSACTION)


async def handle_adjustment_event(
    db: AsyncSession,
    workspace_id: uuid_pkg.UUID,
    event: PartnerWebhookEvent,
) -> str:
    return await _apply_to_ledger(db, workspace_id, event, LedgerReferenceKind.ADJUSTMENT)


async def handle_participant_event(
    db: AsyncSession,
    workspace_id: uuid_pkg.UUID,
    event: PartnerWebhookEvent,
) -> str:
    """Keep the local user's partner sync state in line with the partner."""
    if event.action not in (EventAction.CREATED, EventAction.UPDATED, EventAction.DELETED):
        raise _unsupported(event)

    participant_id = event.data.id or event.data.participant_id
    user = await user_ops.find_partner_participant(
        db, workspace_id, participant_id, event.data.email
    )
    if user is None:
        logger.warning(
            f"No user found for participant {participant_id} in workspace {workspace_id}"
        )
        return f"{event.type} ignored: participant {participant_id} not found"

    if event.action == EventAction.DELETED:
        await user_ops.mark_partner_unsynced(db, user)
        logger.info(f"Cleared partner participant id for user {user.id}")
    else:
        await user_ops.mark_partner_synced(db, user, participant_id)
        logger.info(f"User {user.id} marked synced from {event.type}")
    return f"{event.type} applied to user {user.id}"


HANDLERS: dict[EventCategory, EventHandler] = {
    EventCategory.TRANSACTION: handle_transaction_event,
    EventCategory.ADJUSTMENT: handle_adjustment_event,
    EventCategory.PARTICIPANT: handle_participant_event,
}


async def dispatch_event(
    db: AsyncSession,
    workspace_id: uuid_pkg.UUID,
    event: PartnerWebhookEvent,
) -> str:
    """
    Route an event to its category handler.

    Raises:
        UnsupportedEventError: unknown category or action
        LedgerEntryNotFoundError: ledger event references no known issuance
    """
    handler = HANDLERS.get(event.category)
    if handler is None:
        raise _unsupported(event)
    return await handler(db, workspace_id, event)
