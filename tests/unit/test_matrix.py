"""Unit tests for expertise scoring and the matrix builder."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.busfactor.contributions import ContributionScanner, FactorOutcome, make_factor
from src.busfactor.errors import InvalidConfigurationError
from src.busfactor.matrix import (
    ExpertiseMatrixBuilder,
    MatrixCell,
    score_factors,
)
from src.busfactor.models import ContributionType, DomainType, KnowledgeDomain
from src.sources.base import EventQuery
from src.sources.memory import InMemoryEventStore

PAYROLL = KnowledgeDomain(
    id="process:p1", name="Payroll", type=DomainType.PROCESS, related_process_ids=["p1"]
)
HIRING = KnowledgeDomain(
    id="process:p2", name="Hiring", type=DomainType.PROCESS, related_process_ids=["p2"]
)


class SlowEventStore(InMemoryEventStore):
    """Event store that holds each query open and records peak concurrency."""

    def __init__(self, delay: float = 0.01):
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def _hold(self) -> None:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def count_events(self, query: EventQuery) -> int:
        await self._hold()
        return await super().count_events(query)

    async def count_question_replies(self, query: EventQuery) -> int:
        await self._hold()
        return await super().count_question_replies(query)


class TestScoreFactors:
    """Tests for the expertise score formula."""

    def test_no_factors_scores_zero(self):
        assert score_factors([]) == 0.0

    @pytest.mark.parametrize("count,expected", [(20, 16.0), (25, 25.0), (40, 64.0), (50, 100.0)])
    def test_single_process_factor(self, count, expected):
        factor = make_factor(ContributionType.PROCESS_PARTICIPATION, count)
        assert score_factors([factor]) == pytest.approx(expected)

    def test_score_capped_at_100(self):
        factor = make_factor(ContributionType.QUESTION_RESPONDER, 500)
        assert score_factors([factor]) == 100.0

    def test_mixed_factors_weighted_by_type(self):
        factors = [
            make_factor(ContributionType.PROCESS_PARTICIPATION, 50),  # 1.0 * 1.2 * 5
            make_factor(ContributionType.MEETING_PRESENCE, 20),  # 0.5 * 0.8 * 2
        ]
        expected = (1.0 * 1.2 * 5 + 0.5 * 0.8 * 2) / (1.2 + 0.8) * 20
        assert score_factors(factors) == pytest.approx(expected)


class TestExpertiseMatrixBuilder:
    """Tests for concurrent matrix construction."""

    @pytest.mark.asyncio
    async def test_only_meaningful_cells_retained(self, people, process_events, window, org_id):
        store = InMemoryEventStore(
            [*process_events("alice", 40), *process_events("bob", 10)]
        )
        builder = ExpertiseMatrixBuilder(ContributionScanner(store, 1.0), max_concurrency=2)

        matrix = await builder.build(org_id, people, [PAYROLL, HIRING], *window, 5.0)

        assert matrix.cells_evaluated == len(people) * 2
        assert matrix.score("alice", PAYROLL.id) == pytest.approx(64.0)
        # bob scores 4, below the activity threshold
        assert "bob" not in matrix.scores
        # Zero cells are never stored
        assert all(score > 0 for scores in matrix.scores.values() for score in scores.values())
        assert HIRING.id not in matrix.scores["alice"]

    @pytest.mark.asyncio
    async def test_factors_kept_for_retained_cells(self, people, process_events, window, org_id):
        store = InMemoryEventStore(process_events("alice", 30))
        builder = ExpertiseMatrixBuilder(ContributionScanner(store, 1.0), max_concurrency=2)

        matrix = await builder.build(org_id, people, [PAYROLL], *window, 5.0)

        factors = matrix.factors_for("alice", PAYROLL.id)
        assert [f.type for f in factors] == [ContributionType.PROCESS_PARTICIPATION]
        assert matrix.factors_for("bob", PAYROLL.id) == []

    @pytest.mark.asyncio
    async def test_degraded_factors_counted(self, people, process_events, window, org_id):
        store = InMemoryEventStore(process_events("alice", 30))
        store.count_question_replies = AsyncMock(side_effect=RuntimeError("boom"))
        builder = ExpertiseMatrixBuilder(ContributionScanner(store, 1.0), max_concurrency=2)

        matrix = await builder.build(org_id, people, [PAYROLL], *window, 5.0)

        assert matrix.degraded_factors == len(people)
        assert not matrix.fully_degraded
        assert matrix.score("alice", PAYROLL.id) == pytest.approx(36.0)

    @pytest.mark.asyncio
    async def test_empty_inputs(self, window, org_id):
        builder = ExpertiseMatrixBuilder(ContributionScanner(InMemoryEventStore(), 1.0))

        matrix = await builder.build(org_id, [], [PAYROLL], *window, 5.0)

        assert matrix.scores == {}
        assert matrix.cells_evaluated == 0
        assert not matrix.fully_degraded

    @pytest.mark.asyncio
    async def test_cells_run_concurrently_within_limit(self, people, window, org_id):
        store = SlowEventStore()
        builder = ExpertiseMatrixBuilder(ContributionScanner(store, 1.0), max_concurrency=3)

        matrix = await builder.build(org_id, people, [PAYROLL, HIRING], *window, 5.0)

        assert matrix.cells_evaluated == 8
        assert 1 < store.peak <= 3
        assert store.in_flight == 0

    @pytest.mark.asyncio
    async def test_single_worker_runs_sequentially(self, people, window, org_id):
        store = SlowEventStore(delay=0.001)
        builder = ExpertiseMatrixBuilder(ContributionScanner(store, 1.0), max_concurrency=1)

        await builder.build(org_id, people, [PAYROLL], *window, 5.0)

        assert store.peak == 1

    @pytest.mark.parametrize("max_concurrency", [0, -2])
    def test_concurrency_must_be_positive(self, max_concurrency):
        scanner = ContributionScanner(InMemoryEventStore(), 1.0)

        with pytest.raises(InvalidConfigurationError):
            ExpertiseMatrixBuilder(scanner, max_concurrency=max_concurrency)


class TestMerge:
    """Tests for single-owner aggregation."""

    def test_merge_applies_threshold(self):
        cells = [
            MatrixCell("alice", "d1", 40.0),
            MatrixCell("bob", "d1", 3.0),
            MatrixCell("carol", "d1", 0.0),
        ]

        matrix = ExpertiseMatrixBuilder._merge(cells, min_activity_threshold=5.0)

        assert matrix.scores == {"alice": {"d1": 40.0}}
        assert matrix.cells_evaluated == 3

    def test_all_failed_outcomes_flag_fully_degraded(self):
        outcome = FactorOutcome(ContributionType.DOCUMENT_AUTHORSHIP, error="boom")
        cells = [MatrixCell("alice", "d1", 0.0, (outcome,))]

        matrix = ExpertiseMatrixBuilder._merge(cells, min_activity_threshold=5.0)

        assert matrix.fully_degraded
