"""RewardSTACK webhook ingestion pipeline.

Stages run in a fixed order and each one is a hard gate:

1. workspace resolution (unknown or integration disabled -> 404)
2. rate limiting per workspace (-> 429 with retry-after)
3. idempotency check: a replay of a processed event returns 200 at once,
   before any signature work
4. HMAC signature verification when the workspace has a secret (-> 401)
5. audit log row written as received
6. dispatch by event category inside a SAVEPOINT
7. audit row settled, then the idempotency key marked

The key is marked strictly after the dispatch committed, so a delivery that
fails or times out mid-dispatch is still eligible when the partner retries.
Audit log writes are best-effort and never block the business transition.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    IntegrationDisabledError,
    NotFoundError,
    RateLimitError,
    UnsupportedEventError,
    ValidationError,
    WebhookProcessingError,
    WebhookSignatureError,
)
from app.core.idempotency import IdempotencyStore, webhook_idempotency_store
from app.core.rate_limit import WEBHOOK_LIMIT, RateLimitConfig, RateLimiter, webhook_rate_limiter
from app.core.security import verify_signature
from app.domain.webhook_log_operations import webhook_log_ops
from app.domain.workspace_operations import workspace_ops
from app.models.webhook import WebhookLog
from app.models.workspace import Workspace
from app.services.rewardstack.events import PartnerWebhookEvent, parse_event
from app.services.rewardstack.handlers import dispatch_event

logger = logging.getLogger(__name__)

# Audit rows for rejected signatures carry this prefix and are never retried
SIGNATURE_REJECTED_PREFIX = "Signature rejected: "
RETRY_FAILED_PREFIX = "Retry failed: "
MAX_RETRY_BATCH = 10
EVENT_TYPE_MAX_LENGTH = 100


@dataclass
class RetryResult:
    log_id: uuid_pkg.UUID
    event_id: str | None
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "logId": str(self.log_id),
            "eventId": self.event_id,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class RetryReport:
    results: list[RetryResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "retried": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


def parse_workspace_id(raw: str | None) -> uuid_pkg.UUID:
    if not raw:
        raise ValidationError("Missing workspaceId parameter")
    try:
        return uuid_pkg.UUID(raw)
    except ValueError:
        raise ValidationError("Invalid workspaceId parameter") from None


class WebhookIngestionPipeline:
    """Accepts partner callbacks for one workspace at a time."""

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        idempotency_store: IdempotencyStore | None = None,
        rate_limit: RateLimitConfig | None = None,
        signature_header: str | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or webhook_rate_limiter
        self.idempotency_store = idempotency_store or webhook_idempotency_store
        self.rate_limit = rate_limit or WEBHOOK_LIMIT
        self.signature_header = signature_header or settings.webhook_signature_header

    async def resolve_workspace(self, db: AsyncSession, workspace_id: uuid_pkg.UUID) -> Workspace:
        workspace = await workspace_ops.get(db, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace")
        if not workspace.rewardstack_enabled:
            raise IntegrationDisabledError()
        return workspace

    async def ingest(
        self,
        db: AsyncSession,
        workspace_id_param: str | None,
        body: bytes,
        signature: str | None,
    ) -> dict[str, Any]:
        """
        Run one delivery through every stage.

        Returns:
            {"received": True, "eventId": ...}, plus a "note" for an idempotent replay

        Raises:
            ValidationError: missing routing parameter, malformed payload, unsupported event
            NotFoundError: unknown workspace or integration disabled
            RateLimitError: workspace budget exhausted
            WebhookSignatureError: missing or invalid signature
            WebhookProcessingError: the handler failed; the partner should retry
        """
        workspace_id = parse_workspace_id(workspace_id_param)
        workspace = await self.resolve_workspace(db, workspace_id)

        decision = self.rate_limiter.check(str(workspace.id), self.rate_limit)
        if not decision.allowed:
            logger.warning(
                f"Webhook rate limit exceeded for workspace {workspace.id}, "
                f"retry after {decision.retry_after}s"
            )
            raise RateLimitError(decision.retry_after)

        event, raw = parse_event(body)

        if await self.idempotency_store.is_processed(event.id, workspace.id):
            logger.info(f"Webhook event {event.id} already processed for workspace {workspace.id}")
            return {
                "received": True,
                "eventId": event.id,
                "note": "Already processed (idempotent)",
            }

        secret = workspace_ops.get_webhook_secret(workspace)
        if secret:
            if not verify_signature(secret, body, signature):
                reason = "missing signature" if not signature else "invalid signature"
                logger.warning(
                    f"Webhook signature check failed for workspace {workspace.id}: "
                    f"{reason} (event {event.id})"
                )
                await self._write_log(
                    db, workspace.id, event, raw, error=f"{SIGNATURE_REJECTED_PREFIX}{reason}"
                )
                await self._commit_audit(db)
                raise WebhookSignatureError()
        else:
            logger.debug(f"No webhook secret configured for workspace {workspace.id}; skipping verification")

        log = await self._write_log(db, workspace.id, event, raw)

        try:
            async with db.begin_nested():
                outcome = await dispatch_event(db, workspace.id, event)
        except UnsupportedEventError as e:
            logger.warning(f"Unsupported webhook event {event.type} ({event.id}): {e.message}")
            await self._settle_failed(db, log, e.message)
            raise
        except Exception as e:
            logger.exception(f"Webhook dispatch failed for event {event.id} ({event.type})")
            await self._settle_failed(db, log, _describe(e))
            raise WebhookProcessingError() from e

        await self._settle_processed(db, log)
        await db.commit()

        if not await self.idempotency_store.mark_processed(event.id, workspace.id):
            logger.info(f"Webhook event {event.id} was marked processed concurrently")

        logger.info(f"Webhook event {event.id} processed: {outcome}")
        return {"received": True, "eventId": event.id}

    async def retry_failed(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        log_ids: list[uuid_pkg.UUID] | None = None,
        limit: int = MAX_RETRY_BATCH,
    ) -> RetryReport:
        """Re-dispatch failed audit rows. Signature rejections are skipped."""
        limit = max(1, min(limit, MAX_RETRY_BATCH))
        logs = await webhook_log_ops.list_failed(db, workspace_id, limit=limit, ids=log_ids)
        report = RetryReport()

        for log in logs:
            if (log.error or "").startswith(SIGNATURE_REJECTED_PREFIX):
                continue
            report.results.append(await self._retry_one(db, workspace_id, log))

        logger.info(
            f"Webhook retry for workspace {workspace_id}: "
            f"{report.succeeded} succeeded, {report.failed} failed"
        )
        return report

    async def _retry_one(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        log: WebhookLog,
    ) -> RetryResult:
        try:
            event = PartnerWebhookEvent.model_validate(log.payload or {})
            if await self.idempotency_store.is_processed(event.id, workspace_id):
                await webhook_log_ops.mark_processed(db, log)
                await db.commit()
                return RetryResult(log_id=log.id, event_id=event.id, success=True)

            async with db.begin_nested():
                await dispatch_event(db, workspace_id, event)
            await webhook_log_ops.mark_processed(db, log)
            await db.commit()
        except Exception as e:
            logger.warning(f"Retry of webhook log {log.id} failed: {_describe(e)}")
            error = f"{RETRY_FAILED_PREFIX}{_describe(e)}"
            await webhook_log_ops.mark_failed(db, log, error)
            await db.commit()
            return RetryResult(log_id=log.id, event_id=log.event_id, success=False, error=error)

        await self.idempotency_store.mark_processed(event.id, workspace_id)
        return RetryResult(log_id=log.id, event_id=event.id, success=True)

    async def _write_log(
        self,
        db: AsyncSession,
        workspace_id: uuid_pkg.UUID,
        event: PartnerWebhookEvent,
        raw: dict[str, Any],
        error: str | None = None,
    ) -> WebhookLog | None:
        try:
            async with db.begin_nested():
                return await webhook_log_ops.create(
                    db,
                    workspace_id,
                    event.type[:EVENT_TYPE_MAX_LENGTH],
                    raw,
                    event_id=event.id,
                    external_ref=event.data.id,
                    error=error,
                )
        except Exception:
            logger.exception(f"Failed to write webhook audit log for event {event.id}")
            return None

    async def _settle_processed(self, db: AsyncSession, log: WebhookLog | None) -> None:
        if log is None:
            return
        try:
            async with db.begin_nested():
                await webhook_log_ops.mark_processed(db, log)
        except Exception:
            logger.exception(f"Failed to mark webhook log {log.id} processed")

    async def _settle_failed(self, db: AsyncSession, log: WebhookLog | None, error: str) -> None:
        if log is not None:
            try:
                async with db.begin_nested():
                    await webhook_log_ops.mark_failed(db, log, error)
            except Exception:
                logger.exception(f"Failed to mark webhook log {log.id} failed")
        await self._commit_audit(db)

    async def _commit_audit(self, db: AsyncSession) -> None:
        # The request is about to fail, so the audit row is committed here
        try:
            await db.commit()
        except Exception:
            logger.exception("Failed to commit webhook audit log")


def _describe(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error)
    return message or type(error).__name__


webhook_pipeline = WebhookIngestionPipeline()
