"""
External collaborators for the bus factor engine.

- Event store: time-series of organizational events (Postgres)
- Directory: people, departments and processes (Neo4j)
"""

from src.sources.base import Directory, Event, EventQuery, EventStore, Person, Process
from src.sources.memory import InMemoryDirectory, InMemoryEventStore

__all__ = [
    "Directory",
    "Event",
    "EventQuery",
    "EventStore",
    "Person",
    "Process",
    "InMemoryDirectory",
    "InMemoryEventStore",
]
