"""
Domain Discoverer - Finds the knowledge domains of an organization.

Sources:
- Directory: one domain per process and per department
- Event store: one domain per topic (and, optionally, per source system)
  seen in event metadata within the window
"""

from datetime import datetime

import structlog

from src.busfactor.errors import UpstreamUnavailableError
from src.busfactor.models import (
    DEPARTMENT_PREFIX,
    PROCESS_PREFIX,
    SYSTEM_PREFIX,
    TOPIC_PREFIX,
    DomainType,
    KnowledgeDomain,
)
from src.config import settings
from src.sources.base import Directory, EventStore

logger = structlog.get_logger()


class DomainDiscoverer:
    """Produces a de-duplicated set of knowledge domains."""

    def __init__(
        self,
        directory: Directory,
        event_store: EventStore,
        topic_limit: int | None = None,
    ):
        self._directory = directory
        self._event_store = event_store
        self._topic_limit = (
            settings.busfactor_topic_domain_limit if topic_limit is None else topic_limit
        )

    async def discover(
        self,
        organization_id: str,
        start: datetime,
        end: datetime,
        include_external_domains: bool = False,
    ) -> list[KnowledgeDomain]:
        """
        Discover knowledge domains for an organization.

        Args:
            organization_id: Organization to analyze
            start: Window start
            end: Window end
            include_external_domains: Also add one domain per source system
                observed in event metadata

        Returns:
            Domains in discovery order, unique by id
        """
        domains: dict[str, KnowledgeDomain] = {}

        def add(domain: KnowledgeDomain) -> None:
            if domain.id not in domains:
                domains[domain.id] = domain

        for process in await self._directory.list_processes(organization_id):
            add(
                KnowledgeDomain(
                    id=f"{PROCESS_PREFIX}{process.id}",
                    name=process.name,
                    type=DomainType.PROCESS,
                    related_process_ids=[process.id],
                )
            )

        for department in await self._directory.list_departments(organization_id):
            add(
                KnowledgeDomain(
                    id=f"{DEPARTMENT_PREFIX}{department}",
                    name=department,
                    type=DomainType.DEPARTMENT,
                )
            )

        for topic in await self._metadata_values(organization_id, "topic", start, end):
            add(
                KnowledgeDomain(
                    id=f"{TOPIC_PREFIX}{topic}",
                    name=topic,
                    type=DomainType.TOPIC,
                    keywords=[topic.lower()],
                )
            )

        if include_external_domains:
            for system in await self._metadata_values(organization_id, "system", start, end):
                add(
                    KnowledgeDomain(
                        id=f"{SYSTEM_PREFIX}{system}",
                        name=system,
                        type=DomainType.SYSTEM,
                        keywords=[system.lower()],
                    )
                )

        logger.info(
            "Domain discovery complete",
            organization_id=organization_id,
            domains=len(domains),
        )

        return list(domains.values())

    async def _metadata_values(
        self,
        organization_id: str,
        field_name: str,
        start: datetime,
        end: datetime,
    ) -> list[str]:
        """Distinct metadata values, or nothing if the lookup fails."""
        try:
            return await self._event_store.distinct_metadata_values(
                organization_id, field_name, start, end, self._topic_limit
            )
        except UpstreamUnavailableError:
            raise
        except Exception as e:
            logger.warning(
                "Metadata domain discovery failed",
                organization_id=organization_id,
                field=field_name,
                error=str(e),
            )
            return []
