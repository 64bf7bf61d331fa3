"""Unit tests for the contribution scanner."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.busfactor.contributions import ContributionScanner, FactorOutcome, make_factor
from src.busfactor.models import ContributionType, DomainType, KnowledgeDomain
from src.sources.memory import InMemoryEventStore

PAYROLL = KnowledgeDomain(
    id="process:p1",
    name="Payroll",
    type=DomainType.PROCESS,
    related_process_ids=["p1"],
)
BILLING = KnowledgeDomain(
    id="topic:billing",
    name="billing",
    type=DomainType.TOPIC,
    keywords=["billing"],
)
FINANCE = KnowledgeDomain(id="dept:Finance", name="Finance", type=DomainType.DEPARTMENT)


class TestMakeFactor:
    """Tests for factor weighting."""

    def test_weight_saturates(self):
        factor = make_factor(ContributionType.PROCESS_PARTICIPATION, 120)
        assert factor.weight == 1.0
        assert factor.count == 120

    def test_weight_scales_linearly_below_saturation(self):
        factor = make_factor(ContributionType.DOCUMENT_AUTHORSHIP, 5)
        assert factor.weight == pytest.approx(0.25)

    def test_description_mentions_count(self):
        factor = make_factor(ContributionType.QUESTION_RESPONDER, 7)
        assert factor.description == "Responded to 7 questions"


class TestContributionScanner:
    """Tests for per-pair signal probing."""

    @pytest.mark.asyncio
    async def test_process_participation(self, event_store, process_events, window, org_id):
        event_store.add(*process_events("alice", 25))
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        factors = await scanner.get_contribution_factors(org_id, "alice", PAYROLL, *window)

        assert len(factors) == 1
        assert factors[0].type == ContributionType.PROCESS_PARTICIPATION
        assert factors[0].count == 25
        assert factors[0].weight == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_other_process_not_counted(self, event_store, process_events, window, org_id):
        event_store.add(*process_events("alice", 10, process_id="p2"))
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        factors = await scanner.get_contribution_factors(org_id, "alice", PAYROLL, *window)

        assert factors == []

    @pytest.mark.asyncio
    async def test_communication_matches_subject_keywords(
        self, event_store, event_factory, window, org_id
    ):
        event_store.add(
            *event_factory("bob", "email_sent", 3, {"subject": "Q3 Billing run"}),
            *event_factory("bob", "message_sent", 2, {"topic": "billing"}),
            *event_factory("bob", "email_sent", 4, {"subject": "Lunch"}),
        )
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        factors = await scanner.get_contribution_factors(org_id, "bob", BILLING, *window)

        hub = [f for f in factors if f.type == ContributionType.COMMUNICATION_HUB]
        assert len(hub) == 1
        assert hub[0].count == 5

    @pytest.mark.asyncio
    async def test_documents_filtered_by_title_for_keyword_domains(
        self, event_store, event_factory, window, org_id
    ):
        event_store.add(
            *event_factory("bob", "document_edited", 2, {"title": "Billing handbook"}),
            *event_factory("bob", "document_created", 3, {"title": "Team offsite"}),
        )
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        billing = await scanner.get_contribution_factors(org_id, "bob", BILLING, *window)
        payroll = await scanner.get_contribution_factors(org_id, "bob", PAYROLL, *window)

        assert [f.count for f in billing if f.type == ContributionType.DOCUMENT_AUTHORSHIP] == [2]
        # No keywords: every authored document counts
        assert [f.count for f in payroll if f.type == ContributionType.DOCUMENT_AUTHORSHIP] == [5]

    @pytest.mark.asyncio
    async def test_meeting_presence_for_department(
        self, event_store, event_factory, window, org_id
    ):
        event_store.add(
            *event_factory("carol", "meeting_attended", 4, {"department": "Finance"}),
            *event_factory("carol", "meeting_attended", 6, {"department": "Sales"}),
        )
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        factors = await scanner.get_contribution_factors(org_id, "carol", FINANCE, *window)

        assert [(f.type, f.count) for f in factors] == [
            (ContributionType.MEETING_PRESENCE, 4)
        ]

    @pytest.mark.asyncio
    async def test_question_replies_need_earlier_question(
        self, event_store, event_factory, window, org_id
    ):
        event_store.add(
            *event_factory(
                "dave", "message_sent", 1, {"conversationId": "c1", "hasQuestion": True}, days_ago=3
            ),
            *event_factory("alice", "message_sent", 2, {"conversationId": "c1", "isReply": True}),
            *event_factory("alice", "message_sent", 1, {"conversationId": "c2", "isReply": True}),
        )
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        factors = await scanner.get_contribution_factors(org_id, "alice", FINANCE, *window)

        assert [(f.type, f.count) for f in factors] == [
            (ContributionType.QUESTION_RESPONDER, 2)
        ]

    @pytest.mark.asyncio
    async def test_events_outside_window_ignored(
        self, event_store, event_factory, window, org_id
    ):
        event_store.add(
            *event_factory("alice", "process_step", 30, {"processId": "p1"}, days_ago=400)
        )
        scanner = ContributionScanner(event_store, query_timeout=1.0)

        assert await scanner.get_contribution_factors(org_id, "alice", PAYROLL, *window) == []

    @pytest.mark.asyncio
    async def test_failing_probe_is_degraded_not_raised(self, process_events, window, org_id):
        store = InMemoryEventStore(process_events("alice", 20))
        store.count_question_replies = AsyncMock(side_effect=RuntimeError("db gone"))
        scanner = ContributionScanner(store, query_timeout=1.0)

        outcomes = await scanner.scan(org_id, "alice", PAYROLL, *window)

        degraded = [o for o in outcomes if o.degraded]
        assert len(degraded) == 1
        assert degraded[0].factor_type == ContributionType.QUESTION_RESPONDER
        assert degraded[0].error == "db gone"
        assert any(o.factor and o.factor.count == 20 for o in outcomes)

    @pytest.mark.asyncio
    async def test_slow_probe_times_out(self, window, org_id):
        async def slow_count(query):
            await asyncio.sleep(5)
            return 10

        store = InMemoryEventStore()
        store.count_events = slow_count
        scanner = ContributionScanner(store, query_timeout=0.01)

        outcomes = await scanner.scan(org_id, "alice", PAYROLL, *window)

        timed_out = [o for o in outcomes if o.error == "timeout"]
        assert {o.factor_type for o in timed_out} == {
            ContributionType.PROCESS_PARTICIPATION,
            ContributionType.DOCUMENT_AUTHORSHIP,
        }


class TestFactorOutcome:
    """Tests for the typed probe result."""

    def test_zero_count_is_not_degraded(self):
        outcome = FactorOutcome(ContributionType.MEETING_PRESENCE)
        assert outcome.factor is None
        assert not outcome.degraded
