"""Organizational directory backed by Neo4j Person/Process nodes."""

from dataclasses import dataclass
from typing import Any

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import AuthError, ServiceUnavailable, SessionExpired

from src.busfactor.errors import UpstreamUnavailableError
from src.config import settings
from src.sources.base import Directory, Person, Process

logger = structlog.get_logger()

_CONNECTION_ERRORS = (ServiceUnavailable, SessionExpired, AuthError, OSError)


@dataclass
class CypherQuery:
    """A Cypher query with its parameters."""

    query: str
    params: dict[str, Any]


class DirectoryQueries:
    """Cypher templates for directory lookups."""

    @staticmethod
    def list_organizations() -> CypherQuery:
        return CypherQuery(
            query="""
            MATCH (p:Person)
            WHERE p.organizationId IS NOT NULL
            RETURN DISTINCT p.organizationId as organizationId
            ORDER BY organizationId
            """,
            params={},
        )

    @staticmethod
    def list_people(
        organization_id: str,
        person_id: str | None = None,
        department: str | None = None,
    ) -> CypherQuery:
        """People in an organization, optionally narrowed by id or department."""
        return CypherQuery(
            query="""
            MATCH (p:Person {organizationId: $organizationId})
            WHERE ($personId IS NULL OR p.id = $personId)
              AND ($department IS NULL OR p.department = $department)
            RETURN p.id as id, p.email as email,
                   p.displayName as displayName, p.department as department
            ORDER BY p.id
            """,
            params={
                "organizationId": organization_id,
                "personId": person_id,
                "department": department,
            },
        )

    @staticmethod
    def list_processes(organization_id: str) -> CypherQuery:
        return CypherQuery(
            query="""
            MATCH (p:Process {organizationId: $organizationId})
            RETURN p.id as id, p.name as name
            ORDER BY p.id
            """,
            params={"organizationId": organization_id},
        )

    @staticmethod
    def list_departments(organization_id: str) -> CypherQuery:
        return CypherQuery(
            query="""
            MATCH (p:Person {organizationId: $organizationId})
            WHERE p.department IS NOT NULL
            RETURN DISTINCT p.department as department
            ORDER BY department
            """,
            params={"organizationId": organization_id},
        )


class Neo4jDirectory(Directory):
    """Async Neo4j directory client."""

    def __init__(self, driver: AsyncDriver | None = None):
        self._driver = driver

    async def connect(self) -> None:
        """Connect to Neo4j."""
        self._driver = AsyncGraphDatabase.driver(
            settings.neo4j_uri,
            auth=(settings.neo4j_user, settings.neo4j_password.get_secret_value()),
        )
        try:
            await self._driver.verify_connectivity()
        except _CONNECTION_ERRORS as e:
            raise UpstreamUnavailableError("directory", str(e)) from e
        logger.info("Directory connected", uri=settings.neo4j_uri)

    async def close(self) -> None:
        """Close Neo4j connection."""
        if self._driver:
            await self._driver.close()
            self._driver = None
            logger.info("Directory connection closed")

    @property
    def driver(self) -> AsyncDriver:
        """Get the Neo4j driver."""
        if not self._driver:
            raise UpstreamUnavailableError("directory", "driver not initialized, call connect() first")
        return self._driver

    async def _run(self, cypher: CypherQuery) -> list[dict[str, Any]]:
        try:
            async with self.driver.session() as session:
                result = await session.run(cypher.query, **cypher.params)
                return await result.data()
        except _CONNECTION_ERRORS as e:
            raise UpstreamUnavailableError("directory", str(e)) from e

    async def list_organizations(self) -> list[str]:
        records = await self._run(DirectoryQueries.list_organizations())
        return [r["organizationId"] for r in records]

    async def list_people(
        self,
        organization_id: str,
        person_id: str | None = None,
        department: str | None = None,
    ) -> list[Person]:
        records = await self._run(
            DirectoryQueries.list_people(organization_id, person_id, department)
        )
        return [
            Person(
                id=r["id"],
                email=r.get("email") or "",
                display_name=r.get("displayName"),
                department=r.get("department"),
            )
            for r in records
        ]

    async def list_processes(self, organization_id: str) -> list[Process]:
        records = await self._run(DirectoryQueries.list_processes(organization_id))
        return [Process(id=r["id"], name=r.get("name") or r["id"]) for r in records]

    async def list_departments(self, organization_id: str) -> list[str]:
        records = await self._run(DirectoryQueries.list_departments(organization_id))
        return [r["department"] for r in records if r.get("department")]
