"""Partner webhook event payloads.

The event type string ("transaction.completed") is decoded exactly once,
at parse time, into an EventCategory and an EventAction. Everything
downstream switches on those enums, never on the raw string.
"""

import json
import uuid as uuid_pkg
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError


class EventCategory(str, Enum):
    """First segment of the event type."""

    TRANSACTION = "transaction"
    ADJUSTMENT = "adjustment"
    PARTICIPANT = "participant"
    UNKNOWN = "unknown"


class EventAction(str, Enum):
    """Second segment of the event type."""

    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"
    UNKNOWN = "unknown"


def decode_event_type(event_type: str) -> tuple[EventCategory, EventAction]:
    """Split "category.action" into enums; unrecognized parts map to UNKNOWN."""
    category_part, _, action_part = event_type.strip().lower().partition(".")
    try:
        category = EventCategory(category_part)
    except ValueError:
        return EventCategory.UNKNOWN, EventAction.UNKNOWN
    try:
        action = EventAction(action_part)
    except ValueError:
        action = EventAction.UNKNOWN
    return category, action


class PartnerEventData(BaseModel):
    """The `data` object of a partner event. Unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = None
    participant_id: str | None = Field(default=None, alias="participantId")
    program_id: str | None = Field(default=None, alias="programId")
    status: str | None = None
    amount: float | None = None
    sku_id: str | None = Field(default=None, alias="skuId")
    email: str | None = None
    metadata: dict[str, Any] | None = None
    error: Any = None

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, dict):
            return str(self.error.get("message") or self.error)
        return str(self.error)

    @property
    def reward_issuance_hint(self) -> uuid_pkg.UUID | None:
        """Local issuance id echoed back in metadata, if present and well-formed."""
        raw = (self.metadata or {}).get("rewardIssuanceId")
        if not raw:
            return None
        try:
            return uuid_pkg.UUID(str(raw))
        except ValueError:
            return None


class PartnerWebhookEvent(BaseModel):
    """A partner callback: at least an id and a type."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    timestamp: str | None = None
    data: PartnerEventData = Field(default_factory=PartnerEventData)

    _category: EventCategory = PrivateAttr(default=EventCategory.UNKNOWN)
    _action: EventAction = PrivateAttr(default=EventAction.UNKNOWN)

    def model_post_init(self, __context: Any) -> None:
        self._category, self._action = decode_event_type(self.type)

    @property
    def category(self) -> EventCategory:
        return self._category

    @property
    def action(self) -> EventAction:
        return self._action


def parse_event(body: bytes) -> tuple[PartnerWebhookEvent, dict[str, Any]]:
    """
    Parse a raw request body.

    Returns the typed event plus the raw JSON object (kept for the audit log).

    Raises:
        ValidationError: body is not JSON, not an object, or lacks id/type
    """
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON payload") from None

    if not isinstance(raw, dict):
        raise ValidationError("Invalid JSON payload")

    try:
        event = PartnerWebhookEvent.model_validate(raw)
    except PydanticValidationError:
        raise ValidationError("Invalid webhook payload: 'id' and 'type' are required") from None

    return event, raw
