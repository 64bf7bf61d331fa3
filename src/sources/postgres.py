"""Event store backed by the Postgres ``events`` table."""

from datetime import datetime

import structlog
from sqlalchemy import ColumnElement, Select, and_, distinct, exists, func, or_, select, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import aliased

from src.busfactor.errors import UpstreamUnavailableError
from src.config import settings
from src.models.event import OrganizationEvent
from src.sources.base import EventQuery, EventStore
from src.sources.metadata import metadata_key

logger = structlog.get_logger()

_CONNECTION_ERRORS = (OperationalError, InterfaceError, OSError)


def _metadata_text(model, field_name: str) -> ColumnElement:
    """Text value of a typed metadata field on the given events alias."""
    return model.event_metadata[metadata_key(field_name)].as_string()


class PostgresEventStore(EventStore):
    """Async event store using SQLAlchemy."""

    def __init__(self, engine: AsyncEngine | None = None):
        self._engine = engine
        self._session_factory: async_sessionmaker | None = None
        if engine is not None:
            self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async def connect(self) -> None:
        """Create the engine from settings if none was injected."""
        if self._engine is None:
            self._engine = create_async_engine(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_pre_ping=True,
            )
            self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        await self.ping()
        logger.info("Event store connected")

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Event store connection closed")

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            raise UpstreamUnavailableError("event_store", "not connected, call connect() first")
        return self._session_factory

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except _CONNECTION_ERRORS as e:
            raise UpstreamUnavailableError("event_store", str(e)) from e
        return True

    async def count_events(self, query: EventQuery) -> int:
        stmt = select(func.count()).select_from(OrganizationEvent)
        stmt = stmt.where(*self._conditions(OrganizationEvent, query))
        return await self._scalar_count(stmt)

    async def count_question_replies(self, query: EventQuery) -> int:
        question = aliased(OrganizationEvent)
        earlier_question = exists().where(
            and_(
                question.organization_id == OrganizationEvent.organization_id,
                _metadata_text(question, "conversation_id")
                == _metadata_text(OrganizationEvent, "conversation_id"),
                _metadata_text(question, "has_question") == "true",
                question.timestamp < OrganizationEvent.timestamp,
            )
        )
        stmt = (
            select(func.count())
            .select_from(OrganizationEvent)
            .where(
                *self._conditions(OrganizationEvent, query),
                _metadata_text(OrganizationEvent, "is_reply") == "true",
                earlier_question,
            )
        )
        return await self._scalar_count(stmt)

    async def distinct_metadata_values(
        self,
        organization_id: str,
        field_name: str,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[str]:
        value = _metadata_text(OrganizationEvent, field_name)
        stmt = (
            select(distinct(value))
            .where(
                OrganizationEvent.organization_id == organization_id,
                OrganizationEvent.timestamp >= start,
                OrganizationEvent.timestamp <= end,
                value.is_not(None),
            )
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [row for row in result.scalars().all() if row]
        except _CONNECTION_ERRORS as e:
            raise UpstreamUnavailableError("event_store", str(e)) from e

    async def _scalar_count(self, stmt: Select) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return int(result.scalar_one() or 0)
        except _CONNECTION_ERRORS as e:
            raise UpstreamUnavailableError("event_store", str(e)) from e
        except DBAPIError as e:
            logger.error("Event count query failed", error=str(e))
            raise

    @staticmethod
    def _conditions(model, query: EventQuery) -> list[ColumnElement]:
        conditions: list[ColumnElement] = [
            model.organization_id == query.organization_id,
            model.timestamp >= query.start,
            model.timestamp <= query.end,
        ]

        if query.actor_id is not None:
            conditions.append(model.actor_id == query.actor_id)

        if query.event_types:
            conditions.append(model.event_type.in_(query.event_types))

        for field_name, accepted in query.metadata_in.items():
            conditions.append(_metadata_text(model, field_name).in_(accepted))

        if query.keywords:
            patterns = [f"%{keyword}%" for keyword in query.keywords]
            conditions.append(
                or_(
                    *(
                        _metadata_text(model, field_name).ilike(pattern)
                        for field_name in query.keyword_fields
                        for pattern in patterns
                    )
                )
            )

        return conditions
