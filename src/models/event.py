"""Organizational event model (read-only for the engine)."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class OrganizationEvent(Base):
    """An ingested event: email, message, meeting, document or process activity."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)  # e.g., "email_sent"
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # "metadata" is reserved on declarative classes, so the attribute is renamed
    event_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        Base.JSON_TYPE,
        default=dict,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_events_org_actor_time", "organization_id", "actor_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<OrganizationEvent {self.event_type} by {self.actor_id}>"
