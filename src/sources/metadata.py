"""
Typed event metadata.

Events carry an open metadata bag. Each event category gets a versioned
schema so that consumers read ``metadata.process_id`` instead of poking at
``metadata["processId"]``. Anything that does not fit lands in the
unparsed bucket rather than being dropped.
"""

from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger()


class EventCategory(str, Enum):
    """Event categories with their own metadata schema."""

    COMMUNICATION = "communication"
    DOCUMENT = "document"
    MEETING = "meeting"
    PROCESS = "process"
    UNKNOWN = "unknown"


# Event types emitted by the ingestion layer
EMAIL_SENT = "email_sent"
MESSAGE_SENT = "message_sent"
DOCUMENT_CREATED = "document_created"
DOCUMENT_EDITED = "document_edited"
MEETING_ATTENDED = "meeting_attended"

COMMUNICATION_EVENT_TYPES = (EMAIL_SENT, MESSAGE_SENT)
DOCUMENT_EVENT_TYPES = (DOCUMENT_CREATED, DOCUMENT_EDITED)
MEETING_EVENT_TYPES = (MEETING_ATTENDED,)

EVENT_CATEGORIES: dict[str, EventCategory] = {
    EMAIL_SENT: EventCategory.COMMUNICATION,
    MESSAGE_SENT: EventCategory.COMMUNICATION,
    DOCUMENT_CREATED: EventCategory.DOCUMENT,
    DOCUMENT_EDITED: EventCategory.DOCUMENT,
    MEETING_ATTENDED: EventCategory.MEETING,
}


class EventMetadata(BaseModel):
    """Fields shared by every event category."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    schema_version: int = Field(default=1, alias="schemaVersion")
    topic: str | None = None
    system: str | None = None  # Source system for connector-ingested events
    process_id: str | None = Field(default=None, alias="processId")

    @property
    def unparsed(self) -> dict[str, Any]:
        """Keys that no schema field claimed."""
        return dict(self.model_extra or {})


class CommunicationMetadata(EventMetadata):
    """Emails and chat messages."""

    subject: str | None = None
    conversation_id: str | None = Field(default=None, alias="conversationId")
    is_reply: bool = Field(default=False, alias="isReply")
    has_question: bool = Field(default=False, alias="hasQuestion")


class DocumentMetadata(EventMetadata):
    """Document creation and edits."""

    title: str | None = None


class MeetingMetadata(EventMetadata):
    """Meeting attendance."""

    department: str | None = None
    meeting_id: str | None = Field(default=None, alias="meetingId")


class UnknownMetadata(EventMetadata):
    """Fallback when a bag fails validation against its category schema."""

    raw: dict[str, Any] = Field(default_factory=dict)


_SCHEMAS: dict[EventCategory, type[EventMetadata]] = {
    EventCategory.COMMUNICATION: CommunicationMetadata,
    EventCategory.DOCUMENT: DocumentMetadata,
    EventCategory.MEETING: MeetingMetadata,
    EventCategory.PROCESS: EventMetadata,
    EventCategory.UNKNOWN: EventMetadata,
}

# Python field name -> raw JSON key in the stored metadata bag
METADATA_KEYS: dict[str, str] = {
    "topic": "topic",
    "system": "system",
    "process_id": "processId",
    "subject": "subject",
    "conversation_id": "conversationId",
    "is_reply": "isReply",
    "has_question": "hasQuestion",
    "title": "title",
    "department": "department",
    "meeting_id": "meetingId",
}


def categorize(event_type: str) -> EventCategory:
    """Map an event type to its metadata category."""
    if event_type in EVENT_CATEGORIES:
        return EVENT_CATEGORIES[event_type]
    if event_type.startswith("process"):
        return EventCategory.PROCESS
    return EventCategory.UNKNOWN


def metadata_key(field_name: str) -> str:
    """Raw storage key for a typed metadata field."""
    try:
        return METADATA_KEYS[field_name]
    except KeyError:
        raise ValueError(f"Unknown metadata field: {field_name}") from None


def parse_metadata(event_type: str, raw: dict[str, Any] | None) -> EventMetadata:
    """Parse a raw metadata bag into its category schema."""
    raw = raw or {}
    schema = _SCHEMAS[categorize(event_type)]
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        logger.debug(
            "Event metadata did not match schema",
            event_type=event_type,
            schema=schema.__name__,
            errors=e.error_count(),
        )
        return UnknownMetadata(raw=raw)
