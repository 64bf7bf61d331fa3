"""
Expertise Matrix Builder - Scores every person in every domain.

Each (person, domain) cell is independent and read-only against the event
store, so cells are evaluated concurrently behind a semaphore sized to the
store's query capacity. Workers only return finished cells; the builder
merges them into the matrix on its own.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from src.busfactor.contributions import ContributionScanner, FactorOutcome
from src.busfactor.errors import InvalidConfigurationError
from src.busfactor.models import ContributionFactor, ContributionType, KnowledgeDomain
from src.config import settings
from src.sources.base import Person

logger = structlog.get_logger()

# Relative strength of each signal as evidence of expertise
CONTRIBUTION_WEIGHTS: dict[ContributionType, float] = {
    ContributionType.PROCESS_PARTICIPATION: 1.2,
    ContributionType.COMMUNICATION_HUB: 1.0,
    ContributionType.DOCUMENT_AUTHORSHIP: 1.3,
    ContributionType.MEETING_PRESENCE: 0.8,
    ContributionType.QUESTION_RESPONDER: 1.5,
    ContributionType.TASK_OWNERSHIP: 1.4,
    ContributionType.MENTORING_ACTIVITY: 1.1,
}


def score_factors(factors: list[ContributionFactor]) -> float:
    """
    Combine factors into a 0-100 expertise score.

    Each factor contributes weight * type weight * min(count / 10, 10),
    averaged over the type weights present and scaled by 20.
    """
    total_score = 0.0
    total_weight = 0.0

    for factor in factors:
        type_weight = CONTRIBUTION_WEIGHTS.get(factor.type, 1.0)
        total_score += factor.weight * type_weight * min(factor.count / 10, 10)
        total_weight += type_weight

    if total_weight <= 0:
        return 0.0
    return min(100.0, (total_score / total_weight) * 20)


@dataclass(frozen=True)
class MatrixCell:
    """A scored (person, domain) pair as returned by a worker."""

    person_id: str
    domain_id: str
    score: float
    outcomes: tuple[FactorOutcome, ...] = ()

    @property
    def factors(self) -> list[ContributionFactor]:
        return [o.factor for o in self.outcomes if o.factor is not None]

    @property
    def degraded_count(self) -> int:
        return sum(1 for o in self.outcomes if o.degraded)


@dataclass
class ExpertiseMatrix:
    """person -> domain -> score, restricted to cells above the activity threshold."""

    scores: dict[str, dict[str, float]] = field(default_factory=dict)
    factors: dict[tuple[str, str], list[ContributionFactor]] = field(default_factory=dict)
    cells_evaluated: int = 0
    factors_evaluated: int = 0
    degraded_factors: int = 0

    @property
    def fully_degraded(self) -> bool:
        """True when every factor probe failed."""
        return self.factors_evaluated > 0 and self.degraded_factors == self.factors_evaluated

    def score(self, person_id: str, domain_id: str) -> float:
        return self.scores.get(person_id, {}).get(domain_id, 0.0)

    def factors_for(self, person_id: str, domain_id: str) -> list[ContributionFactor]:
        return self.factors.get((person_id, domain_id), [])


class ExpertiseMatrixBuilder:
    """Fans out cell scoring to a bounded pool and aggregates the results."""

    def __init__(self, scanner: ContributionScanner, max_concurrency: int | None = None):
        self._scanner = scanner
        if max_concurrency is None:
            max_concurrency = settings.busfactor_max_concurrency
        if max_concurrency < 1:
            raise InvalidConfigurationError(
                f"max_concurrency must be at least 1, got {max_concurrency}",
                fields=["max_concurrency"],
            )
        self._max_concurrency = max_concurrency

    async def build(
        self,
        organization_id: str,
        persons: list[Person],
        domains: list[KnowledgeDomain],
        start: datetime,
        end: datetime,
        min_activity_threshold: float,
    ) -> ExpertiseMatrix:
        """
        Build the expertise matrix.

        Args:
            organization_id: Organization to analyze
            persons: People to score
            domains: Domains to score them in
            start: Window start
            end: Window end
            min_activity_threshold: Cells scoring below this are dropped

        Returns:
            ExpertiseMatrix with only meaningful cells
        """
        started = time.monotonic()
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def evaluate(person: Person, domain: KnowledgeDomain) -> MatrixCell:
            async with semaphore:
                outcomes = await self._scanner.scan(
                    organization_id, person.id, domain, start, end
                )
            factors = [o.factor for o in outcomes if o.factor is not None]
            return MatrixCell(
                person_id=person.id,
                domain_id=domain.id,
                score=score_factors(factors),
                outcomes=tuple(outcomes),
            )

        cells = await asyncio.gather(
            *(evaluate(person, domain) for person in persons for domain in domains)
        )

        matrix = self._merge(cells, min_activity_threshold)

        logger.info(
            "Expertise matrix built",
            organization_id=organization_id,
            persons=len(persons),
            domains=len(domains),
            cells=matrix.cells_evaluated,
            retained=sum(len(s) for s in matrix.scores.values()),
            degraded_factors=matrix.degraded_factors,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )

        return matrix

    @staticmethod
    def _merge(cells: list[MatrixCell], min_activity_threshold: float) -> ExpertiseMatrix:
        """Single-owner aggregation of worker results."""
        matrix = ExpertiseMatrix()

        for cell in cells:
            matrix.cells_evaluated += 1
            matrix.factors_evaluated += len(cell.outcomes)
            matrix.degraded_factors += cell.degraded_count

            # Low-activity cells are dropped, not stored as zero
            if cell.score <= 0 or cell.score < min_activity_threshold:
                continue

            matrix.scores.setdefault(cell.person_id, {})[cell.domain_id] = cell.score
            matrix.factors[(cell.person_id, cell.domain_id)] = cell.factors

        return matrix
