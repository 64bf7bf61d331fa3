"""Pytest fixtures and configuration."""

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Any, Callable

import pytest

from src.busfactor.builder import KnowledgeDependencyBuilder
from src.busfactor.calculator import BusFactorCalculator
from src.sources.base import Event, Person, Process
from src.sources.memory import InMemoryDirectory, InMemoryEventStore

ORG_ID = "org-1"
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def org_id() -> str:
    return ORG_ID


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Fixed clock so analysis windows are deterministic."""
    return lambda: NOW


@pytest.fixture
def window() -> tuple[datetime, datetime]:
    return NOW - timedelta(days=180), NOW


@pytest.fixture
def event_factory() -> Callable[..., list[Event]]:
    """Create ``n`` events for one actor, spread over the last days."""
    ids = count(1)

    def make(
        actor_id: str,
        event_type: str,
        n: int = 1,
        metadata: dict[str, Any] | None = None,
        organization_id: str = ORG_ID,
        days_ago: int = 1,
    ) -> list[Event]:
        return [
            Event(
                id=f"evt-{next(ids)}",
                organization_id=organization_id,
                actor_id=actor_id,
                event_type=event_type,
                timestamp=NOW - timedelta(days=days_ago, minutes=i),
                metadata=dict(metadata or {}),
            )
            for i in range(n)
        ]

    return make


@pytest.fixture
def process_events(event_factory) -> Callable[[str, int], list[Event]]:
    """Process activity tagged with process ``p1``."""

    def make(actor_id: str, n: int, process_id: str = "p1") -> list[Event]:
        return event_factory(actor_id, "process_step", n, {"processId": process_id})

    return make


@pytest.fixture
def people() -> list[Person]:
    return [
        Person(id="alice", email="alice@example.com", display_name="Alice"),
        Person(id="bob", email="bob@example.com", display_name="Bob"),
        Person(id="carol", email="carol@example.com", display_name="Carol"),
        Person(id="dave", email="dave@example.com", display_name="Dave"),
    ]


@pytest.fixture
def directory(people) -> InMemoryDirectory:
    """One process (``p1``), no departments."""
    return InMemoryDirectory(
        people={ORG_ID: people},
        processes={ORG_ID: [Process(id="p1", name="Payroll")]},
    )


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def builder(event_store, directory, clock) -> KnowledgeDependencyBuilder:
    return KnowledgeDependencyBuilder(
        event_store,
        directory,
        max_concurrency=4,
        query_timeout=1.0,
        topic_limit=50,
        clock=clock,
    )


@pytest.fixture
def calculator(builder) -> BusFactorCalculator:
    return BusFactorCalculator(builder)
