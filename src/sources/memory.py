"""In-process collaborators for tests, seeding and dry runs."""

from datetime import datetime
from typing import Iterable

from src.sources.base import Directory, Event, EventQuery, EventStore, Person, Process


class InMemoryEventStore(EventStore):
    """Event store over a list of events, using the typed metadata accessors."""

    def __init__(self, events: Iterable[Event] | None = None):
        self._events: list[Event] = list(events or [])

    def add(self, *events: Event) -> None:
        self._events.extend(events)

    async def ping(self) -> bool:
        return True

    async def count_events(self, query: EventQuery) -> int:
        return sum(1 for event in self._events if self._matches(event, query))

    async def count_question_replies(self, query: EventQuery) -> int:
        count = 0
        for event in self._events:
            if not self._matches(event, query):
                continue
            metadata = event.typed_metadata
            if not getattr(metadata, "is_reply", False):
                continue
            conversation_id = getattr(metadata, "conversation_id", None)
            if conversation_id and self._has_earlier_question(event, conversation_id):
                count += 1
        return count

    async def distinct_metadata_values(
        self,
        organization_id: str,
        field_name: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[str]:
        values: list[str] = []
        for event in self._events:
            if len(values) >= limit:
                break
            if event.organization_id != organization_id:
                continue
            if not start <= event.timestamp <= end:
                continue
            value = getattr(event.typed_metadata, field_name, None)
            if value and value not in values:
                values.append(value)
        return values

    def _has_earlier_question(self, reply: Event, conversation_id: str) -> bool:
        for event in self._events:
            if event.organization_id != reply.organization_id:
                continue
            if event.timestamp >= reply.timestamp:
                continue
            metadata = event.typed_metadata
            if (
                getattr(metadata, "conversation_id", None) == conversation_id
                and getattr(metadata, "has_question", False)
            ):
                return True
        return False

    @staticmethod
    def _matches(event: Event, query: EventQuery) -> bool:
        if event.organization_id != query.organization_id:
            return False
        if not query.start <= event.timestamp <= query.end:
            return False
        if query.actor_id is not None and event.actor_id != query.actor_id:
            return False
        if query.event_types and event.event_type not in query.event_types:
            return False

        metadata = event.typed_metadata
        for field_name, accepted in query.metadata_in.items():
            if getattr(metadata, field_name, None) not in accepted:
                return False

        if query.keywords:
            haystacks = [
                str(getattr(metadata, f, None) or "").lower() for f in query.keyword_fields
            ]
            needles = [k.lower() for k in query.keywords]
            if not any(n in h for n in needles for h in haystacks):
                return False

        return True


class InMemoryDirectory(Directory):
    """Directory over fixed people and process lists, keyed by organization."""

    def __init__(
        self,
        people: dict[str, list[Person]] | None = None,
        processes: dict[str, list[Process]] | None = None,
    ):
        self._people = people or {}
        self._processes = processes or {}

    async def list_organizations(self) -> list[str]:
        organizations = list(self._people)
        for organization_id in self._processes:
            if organization_id not in organizations:
                organizations.append(organization_id)
        return organizations

    async def list_people(
        self,
        organization_id: str,
        person_id: str | None = None,
        department: str | None = None,
    ) -> list[Person]:
        people = self._people.get(organization_id, [])
        if person_id is not None:
            people = [p for p in people if p.id == person_id]
        if department is not None:
            people = [p for p in people if p.department == department]
        return list(people)

    async def list_processes(self, organization_id: str) -> list[Process]:
        return list(self._processes.get(organization_id, []))

    async def list_departments(self, organization_id: str) -> list[str]:
        departments: list[str] = []
        for person in self._people.get(organization_id, []):
            if person.department and person.department not in departments:
                departments.append(person.department)
        return departments
