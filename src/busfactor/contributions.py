"""
Contribution Scanner - Measures behavioral expertise signals.

For one (person, domain) pair, probes the event store for each applicable
signal:
- Process participation: activity tagged with the domain's processes
- Communication hub: emails/messages whose subject or topic mentions the domain
- Document authorship: documents created or edited (by title for keyword domains)
- Meeting presence: department meetings attended
- Question responder: replies to conversations that contained a question

Each probe is evaluated independently. A failing or timed-out probe yields
no contribution and is reported as a degraded outcome; it never aborts the
other probes.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

import structlog

from src.busfactor.models import ContributionFactor, ContributionType, DomainType, KnowledgeDomain
from src.config import settings
from src.sources.base import EventQuery, EventStore
from src.sources.metadata import (
    COMMUNICATION_EVENT_TYPES,
    DOCUMENT_EVENT_TYPES,
    MEETING_EVENT_TYPES,
)

logger = structlog.get_logger()

# Count at which a factor's weight saturates at 1.0 (tuned empirically)
FACTOR_SATURATION: dict[ContributionType, int] = {
    ContributionType.PROCESS_PARTICIPATION: 50,
    ContributionType.COMMUNICATION_HUB: 30,
    ContributionType.DOCUMENT_AUTHORSHIP: 20,
    ContributionType.MEETING_PRESENCE: 40,
    ContributionType.QUESTION_RESPONDER: 20,
}

FACTOR_DESCRIPTIONS: dict[ContributionType, str] = {
    ContributionType.PROCESS_PARTICIPATION: "Participated in {count} process activities",
    ContributionType.COMMUNICATION_HUB: "Sent {count} communications about this topic",
    ContributionType.DOCUMENT_AUTHORSHIP: "Authored/edited {count} related documents",
    ContributionType.MEETING_PRESENCE: "Attended {count} department meetings",
    ContributionType.QUESTION_RESPONDER: "Responded to {count} questions",
}


@dataclass(frozen=True)
class FactorOutcome:
    """Result of probing one factor type: a factor, nothing, or an error."""

    factor_type: ContributionType
    factor: ContributionFactor | None = None
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


Probe = tuple[ContributionType, Callable[[], Awaitable[int]]]


def make_factor(factor_type: ContributionType, count: int) -> ContributionFactor:
    """Build a factor whose weight saturates at the type's constant."""
    saturation = FACTOR_SATURATION.get(factor_type, 20)
    template = FACTOR_DESCRIPTIONS.get(factor_type, "{count} related activities")
    return ContributionFactor(
        type=factor_type,
        weight=min(count / saturation, 1.0),
        count=count,
        description=template.format(count=count),
    )


class ContributionScanner:
    """Read-only scanner of contribution signals."""

    def __init__(self, event_store: EventStore, query_timeout: float | None = None):
        self._event_store = event_store
        self._query_timeout = (
            settings.busfactor_query_timeout_seconds if query_timeout is None else query_timeout
        )

    async def scan(
        self,
        organization_id: str,
        person_id: str,
        domain: KnowledgeDomain,
        start: datetime,
        end: datetime,
    ) -> list[FactorOutcome]:
        """Probe every applicable factor type, one outcome per probe."""
        outcomes = []
        for factor_type, counter in self._probes(organization_id, person_id, domain, start, end):
            outcomes.append(
                await self._evaluate(factor_type, counter, person_id, domain)
            )
        return outcomes

    async def get_contribution_factors(
        self,
        organization_id: str,
        person_id: str,
        domain: KnowledgeDomain,
        start: datetime,
        end: datetime,
    ) -> list[ContributionFactor]:
        """Non-zero factors for a (person, domain) pair."""
        outcomes = await self.scan(organization_id, person_id, domain, start, end)
        return [o.factor for o in outcomes if o.factor is not None]

    def _probes(
        self,
        organization_id: str,
        person_id: str,
        domain: KnowledgeDomain,
        start: datetime,
        end: datetime,
    ) -> list[Probe]:
        """Probes that structurally apply to the domain."""
        store = self._event_store
        base = dict(organization_id=organization_id, actor_id=person_id, start=start, end=end)
        keywords = tuple(domain.keywords or ())
        probes: list[Probe] = []

        if domain.type == DomainType.PROCESS and domain.related_process_ids:
            query = EventQuery(
                **base,
                metadata_in={"process_id": tuple(domain.related_process_ids)},
            )
            probes.append(
                (ContributionType.PROCESS_PARTICIPATION, lambda: store.count_events(query))
            )

        if keywords:
            comm_query = EventQuery(
                **base,
                event_types=COMMUNICATION_EVENT_TYPES,
                keywords=keywords,
                keyword_fields=("subject", "topic"),
            )
            probes.append(
                (ContributionType.COMMUNICATION_HUB, lambda: store.count_events(comm_query))
            )

        # Documents are matched by title only when the domain has keywords
        doc_query = EventQuery(
            **base,
            event_types=DOCUMENT_EVENT_TYPES,
            keywords=keywords,
            keyword_fields=("title",) if keywords else (),
        )
        probes.append(
            (ContributionType.DOCUMENT_AUTHORSHIP, lambda: store.count_events(doc_query))
        )

        if domain.type == DomainType.DEPARTMENT:
            meeting_query = EventQuery(
                **base,
                event_types=MEETING_EVENT_TYPES,
                metadata_in={"department": (domain.name,)},
            )
            probes.append(
                (ContributionType.MEETING_PRESENCE, lambda: store.count_events(meeting_query))
            )

        reply_query = EventQuery(**base, event_types=COMMUNICATION_EVENT_TYPES)
        probes.append(
            (
                ContributionType.QUESTION_RESPONDER,
                lambda: store.count_question_replies(reply_query),
            )
        )

        return probes

    async def _evaluate(
        self,
        factor_type: ContributionType,
        counter: Callable[[], Awaitable[int]],
        person_id: str,
        domain: KnowledgeDomain,
    ) -> FactorOutcome:
        try:
            count = await asyncio.wait_for(counter(), timeout=self._query_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Contribution query timed out",
                factor=factor_type.value,
                person_id=person_id,
                domain_id=domain.id,
                timeout=self._query_timeout,
            )
            return FactorOutcome(factor_type, error="timeout")
        except Exception as e:
            logger.warning(
                "Contribution query failed",
                factor=factor_type.value,
                person_id=person_id,
                domain_id=domain.id,
                error=str(e),
            )
            return FactorOutcome(factor_type, error=str(e) or type(e).__name__)

        if count <= 0:
            return FactorOutcome(factor_type)
        return FactorOutcome(factor_type, factor=make_factor(factor_type, count))
