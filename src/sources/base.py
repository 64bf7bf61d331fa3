"""Contracts for the collaborators the engine reads from."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any

from src.sources.metadata import EventMetadata, parse_metadata


@dataclass(frozen=True)
class Person:
    """A person from the organizational directory."""

    id: str
    email: str
    display_name: str | None = None
    department: str | None = None


@dataclass(frozen=True)
class Process:
    """A business process from the organizational directory."""

    id: str
    name: str


@dataclass(frozen=True)
class Event:
    """A single organizational event (email, meeting, document edit, ...)."""

    id: str
    organization_id: str
    actor_id: str | None
    event_type: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @cached_property
    def typed_metadata(self) -> EventMetadata:
        """Metadata parsed into its category schema."""
        return parse_metadata(self.event_type, self.metadata)


@dataclass(frozen=True)
class EventQuery:
    """Filter for counting events.

    Metadata filters are expressed with typed field names (see
    ``src.sources.metadata``); stores translate them to raw keys.
    """

    organization_id: str
    start: datetime
    end: datetime
    actor_id: str | None = None
    event_types: tuple[str, ...] = ()
    # field -> accepted values (exact match on any)
    metadata_in: dict[str, tuple[str, ...]] = field(default_factory=dict)
    # Case-insensitive substring match of any keyword against any of the fields
    keywords: tuple[str, ...] = ()
    keyword_fields: tuple[str, ...] = ()


class EventStore(ABC):
    """Queryable time-series store of organizational events."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check the store is reachable. Raises UpstreamUnavailableError if not."""
        pass

    @abstractmethod
    async def count_events(self, query: EventQuery) -> int:
        """Count events matching the query."""
        pass

    @abstractmethod
    async def count_question_replies(self, query: EventQuery) -> int:
        """Count replies matching the query that answer an earlier question.

        A reply answers a question when an earlier event in the same
        conversation is flagged as containing a question.
        """
        pass

    @abstractmethod
    async def distinct_metadata_values(
        self,
        organization_id: str,
        field_name: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[str]:
        """Distinct non-null values of a metadata field within a window."""
        pass


class Directory(ABC):
    """Queryable graph of people, departments and processes."""

    @abstractmethod
    async def list_organizations(self) -> list[str]:
        """All organization IDs known to the directory."""
        pass

    @abstractmethod
    async def list_people(
        self,
        organization_id: str,
        person_id: str | None = None,
        department: str | None = None,
    ) -> list[Person]:
        """People in an organization, optionally filtered."""
        pass

    @abstractmethod
    async def list_processes(self, organization_id: str) -> list[Process]:
        """Processes in an organization."""
        pass

    @abstractmethod
    async def list_departments(self, organization_id: str) -> list[str]:
        """Distinct non-null department names across the organization's people."""
        pass
