"""
Knowledge Dependency Builder - Builds the knowledge dependency graph.

Pipeline (each stage produces a new structure, nothing is mutated upstream):
1. Discover domains (or take the caller's custom set)
2. Score every person in every domain from contribution signals
3. Rank experts and derive dependencies and person profiles
4. Roll up coverage and single points of failure
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import structlog

from src.busfactor.cache import GraphCache, make_cache_key
from src.busfactor.contributions import ContributionScanner
from src.busfactor.discovery import DomainDiscoverer
from src.busfactor.distribution import (
    ExpertiseDistributionAnalyzer,
    calculate_organization_coverage,
)
from src.busfactor.errors import UpstreamUnavailableError
from src.busfactor.matrix import ExpertiseMatrixBuilder
from src.busfactor.models import KnowledgeGraph, PersonKnowledge
from src.busfactor.schemas import GraphBuildOptions, parse_options, require_organization_id
from src.sources.base import Directory, EventStore

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeDependencyBuilder:
    """
    Builds knowledge graphs from the event store and directory.

    Holds only its collaborator handles and an optional cache, so callers
    construct one per set of connections.
    """

    def __init__(
        self,
        event_store: EventStore,
        directory: Directory,
        cache: GraphCache | None = None,
        *,
        max_concurrency: int | None = None,
        query_timeout: float | None = None,
        topic_limit: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.event_store = event_store
        self.directory = directory
        self.cache = cache
        self._clock = clock

        self.discoverer = DomainDiscoverer(directory, event_store, topic_limit=topic_limit)
        self.scanner = ContributionScanner(event_store, query_timeout=query_timeout)
        self.matrix_builder = ExpertiseMatrixBuilder(self.scanner, max_concurrency=max_concurrency)
        self.analyzer = ExpertiseDistributionAnalyzer()

    def now(self) -> datetime:
        return self._clock()

    def window(self, lookback_days: int) -> tuple[datetime, datetime]:
        """Analysis window ending now."""
        end = self.now()
        return end - timedelta(days=lookback_days), end

    async def build_knowledge_graph(self, organization_id: str, **options: Any) -> KnowledgeGraph:
        """
        Build the complete knowledge dependency graph.

        Args:
            organization_id: Organization to analyze
            **options: GraphBuildOptions fields (lookback_days,
                min_activity_threshold, include_external_domains,
                custom_domains)

        Returns:
            KnowledgeGraph; empty when the organization has no domains

        Raises:
            InvalidConfigurationError: Options out of range
            UpstreamUnavailableError: Event store or directory unreachable
        """
        require_organization_id(organization_id)
        opts = parse_options(GraphBuildOptions, options)
        started = time.monotonic()
        start, end = self.window(opts.lookback_days)

        cache_key = make_cache_key(
            organization_id,
            opts.lookback_days,
            end.date(),
            opts.min_activity_threshold,
            opts.include_external_domains,
            opts.custom_domains,
        )
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Knowledge graph cache hit", organization_id=organization_id)
                return cached

        # 1. Discover or use provided knowledge domains
        if opts.custom_domains:
            domains = list({d.id: d for d in opts.custom_domains}.values())
        else:
            domains = await self.discoverer.discover(
                organization_id, start, end, opts.include_external_domains
            )

        if not domains:
            logger.info("No knowledge domains found", organization_id=organization_id)
            return KnowledgeGraph()

        # 2. Score every person in every domain
        persons = await self.directory.list_people(organization_id)
        await self._ensure_event_store()
        matrix = await self.matrix_builder.build(
            organization_id, persons, domains, start, end, opts.min_activity_threshold
        )
        if matrix.fully_degraded:
            raise UpstreamUnavailableError(
                "event_store", f"all {matrix.factors_evaluated} contribution queries failed"
            )

        # 3. Rank experts and derive dependencies
        experts, dependencies = self.analyzer.analyze(matrix, domains, persons)

        # 4. Organization-wide metrics
        graph = KnowledgeGraph(
            domains=domains,
            experts=experts,
            dependencies=dependencies,
            organization_coverage=calculate_organization_coverage(domains, dependencies),
            single_points_of_failure=[
                e.person_id for e in experts if e.unique_knowledge_count > 0
            ],
        )

        logger.info(
            "Knowledge graph built",
            organization_id=organization_id,
            domains=len(domains),
            persons=len(persons),
            experts=len(experts),
            dependencies=len(dependencies),
            single_points_of_failure=len(graph.single_points_of_failure),
            degraded_factors=matrix.degraded_factors,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )

        if self.cache is not None:
            await self.cache.set(cache_key, graph)

        return graph

    async def get_person_knowledge(
        self, organization_id: str, person_id: str, **options: Any
    ) -> PersonKnowledge | None:
        """
        Knowledge profile for one person.

        Returns:
            PersonKnowledge, or None if the person is not in the directory.
            A known person without meaningful activity gets an empty profile.
        """
        require_organization_id(organization_id)
        parse_options(GraphBuildOptions, options)

        people = await self.directory.list_people(organization_id, person_id=person_id)
        if not people:
            return None

        graph = await self.build_knowledge_graph(organization_id, **options)
        expert = graph.expert(person_id)
        if expert is not None:
            return expert

        return self.analyzer.build_person_knowledge(people[0], [])

    async def _ensure_event_store(self) -> None:
        """Abort early when the event store cannot be reached at all."""
        try:
            await self.event_store.ping()
        except UpstreamUnavailableError:
            raise
        except Exception as e:
            raise UpstreamUnavailableError("event_store", str(e)) from e
