"""RewardSTACK partner integration: event decoding, handlers and ingestion."""

from app.services.rewardstack.events import (
    EventAction,
    EventCategory,
    PartnerWebhookEvent,
    decode_event_type,
    parse_event,
)
from app.services.rewardstack.handlers import HANDLERS, dispatch_event
from app.services.rewardstack.pipeline import (
    WebhookIngestionPipeline,
    webhook_pipeline,
)

__all__ = [
    "EventAction",
    "EventCategory",
    "PartnerWebhookEvent",
    "decode_event_type",
    "parse_event",
    "HANDLERS",
    "dispatch_event",
    "WebhookIngestionPipeline",
    "webhook_pipeline",
]
