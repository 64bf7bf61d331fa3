#!/usr/bin/env python3
"""
Sample data seeding script for the Knowledge Risk Engine.
Populates the PostgreSQL event store and the Neo4j directory with a small
organization that has a clear single point of failure.

Usage:
    python seed_sample_data.py

Requirements:
    - Docker containers running (PostgreSQL, Neo4j)
    - Environment variables configured (.env file)
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from src.config import settings
from src.models.base import Base
from src.models.event import OrganizationEvent
from src.observability.logging_config import configure_logging
from src.sources.neo4j_directory import Neo4jDirectory

logger = structlog.get_logger()

ORGANIZATION_ID = "org-sample"

# Sample Data Definitions
SAMPLE_PEOPLE = [
    {"id": "alice", "email": "alice.chen@company.com", "displayName": "Alice Chen", "department": "Finance"},
    {"id": "bob", "email": "bob.smith@company.com", "displayName": "Bob Smith", "department": "Finance"},
    {"id": "carol", "email": "carol.williams@company.com", "displayName": "Carol Williams", "department": "Engineering"},
    {"id": "david", "email": "david.lee@company.com", "displayName": "David Lee", "department": "Engineering"},
    {"id": "emma", "email": "emma.wilson@company.com", "displayName": "Emma Wilson", "department": "Engineering"},
]

SAMPLE_PROCESSES = [
    {"id": "payroll", "name": "Monthly Payroll"},
    {"id": "release", "name": "Production Release"},
]

# (actor, event type, count, metadata)
SAMPLE_ACTIVITY = [
    # Alice runs payroll alone
    ("alice", "process_step", 45, {"processId": "payroll"}),
    ("alice", "document_edited", 12, {"title": "Payroll runbook"}),
    # Releases are shared across the team
    ("carol", "process_step", 30, {"processId": "release"}),
    ("david", "process_step", 28, {"processId": "release"}),
    ("emma", "process_step", 25, {"processId": "release"}),
    # Billing discussions
    ("bob", "email_sent", 20, {"subject": "Billing reconciliation", "topic": "Billing"}),
    ("alice", "email_sent", 8, {"subject": "Billing cutoff", "topic": "Billing"}),
    # Department meetings
    ("alice", "meeting_attended", 16, {"department": "Finance"}),
    ("bob", "meeting_attended", 14, {"department": "Finance"}),
    ("carol", "meeting_attended", 18, {"department": "Engineering"}),
    ("david", "meeting_attended", 10, {"department": "Engineering"}),
]


def build_events(now: datetime) -> list[OrganizationEvent]:
    """Spread sample activity over the last 90 days."""
    rng = random.Random(42)
    events = []
    for actor_id, event_type, n, metadata in SAMPLE_ACTIVITY:
        for _ in range(n):
            events.append(
                OrganizationEvent(
                    id=str(uuid4()),
                    organization_id=ORGANIZATION_ID,
                    actor_id=actor_id,
                    event_type=event_type,
                    timestamp=now - timedelta(days=rng.randint(0, 90), minutes=rng.randint(0, 1440)),
                    event_metadata=dict(metadata),
                )
            )

    # A question thread Carol keeps answering
    for i in range(6):
        conversation_id = f"conv-{i}"
        asked_at = now - timedelta(days=i + 1, hours=2)
        events.append(
            OrganizationEvent(
                id=str(uuid4()),
                organization_id=ORGANIZATION_ID,
                actor_id="emma",
                event_type="message_sent",
                timestamp=asked_at,
                event_metadata={"conversationId": conversation_id, "hasQuestion": True},
            )
        )
        events.append(
            OrganizationEvent(
                id=str(uuid4()),
                organization_id=ORGANIZATION_ID,
                actor_id="carol",
                event_type="message_sent",
                timestamp=asked_at + timedelta(minutes=30),
                event_metadata={"conversationId": conversation_id, "isReply": True},
            )
        )
    return events


async def seed_postgresql():
    """Seed PostgreSQL with organizational events."""
    logger.info("Seeding PostgreSQL events")

    engine = create_async_engine(settings.database_url, echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with session_factory() as session:
            events = build_events(datetime.now(timezone.utc))
            session.add_all(events)
            await session.commit()

        logger.info("Created sample events", count=len(events))
    finally:
        await engine.dispose()


async def seed_neo4j():
    """Seed Neo4j with people and processes."""
    logger.info("Seeding Neo4j directory")

    directory = Neo4jDirectory()
    await directory.connect()
    try:
        async with directory.driver.session() as session:
            for person in SAMPLE_PEOPLE:
                await session.run(
                    """
                    MERGE (p:Person {id: $id, organizationId: $organizationId})
                    SET p.email = $email, p.displayName = $displayName,
                        p.department = $department
                    """,
                    organizationId=ORGANIZATION_ID,
                    **person,
                )
            for process in SAMPLE_PROCESSES:
                await session.run(
                    """
                    MERGE (p:Process {id: $id, organizationId: $organizationId})
                    SET p.name = $name
                    """,
                    organizationId=ORGANIZATION_ID,
                    **process,
                )

        logger.info(
            "Created directory nodes",
            people=len(SAMPLE_PEOPLE),
            processes=len(SAMPLE_PROCESSES),
        )
    finally:
        await directory.close()


async def main():
    """Run all seeding operations."""
    configure_logging()
    logger.info("Starting sample data seeding", organization_id=ORGANIZATION_ID)

    try:
        await seed_postgresql()
        await seed_neo4j()
        logger.info("Sample data seeding complete", organization_id=ORGANIZATION_ID)
    except Exception as e:
        logger.error("Error during seeding", error=str(e), exc_info=True)
        raise


if __name__ == "__main__":
    asyncio.run(main())
