"""Unit tests for expertise distribution analysis."""

import pytest

from src.busfactor.distribution import (
    ExpertiseDistributionAnalyzer,
    calculate_organization_coverage,
    determine_criticality,
)
from src.busfactor.matrix import ExpertiseMatrix
from src.busfactor.models import (
    Criticality,
    DomainType,
    KnowledgeDependency,
    KnowledgeDomain,
    KnowledgeType,
)

D1 = KnowledgeDomain(id="topic:a", name="a", type=DomainType.TOPIC)
D2 = KnowledgeDomain(id="topic:b", name="b", type=DomainType.TOPIC)


def dependency(domain_id: str, person_id: str, strength: float) -> KnowledgeDependency:
    return KnowledgeDependency(domain_id, person_id, strength, 1 - strength)


class TestExpertiseDistributionAnalyzer:
    """Tests for ranking and dependency derivation."""

    @pytest.fixture
    def analyzer(self):
        return ExpertiseDistributionAnalyzer()

    def test_strengths_are_shares(self, analyzer, people):
        matrix = ExpertiseMatrix(scores={"alice": {D1.id: 80.0}, "bob": {D1.id: 20.0}})

        experts, deps = analyzer.analyze(matrix, [D1], people)

        strengths = {d.person_id: d.dependency_strength for d in deps}
        assert strengths == {"alice": pytest.approx(0.8), "bob": pytest.approx(0.2)}
        assert sum(strengths.values()) == pytest.approx(1.0)

        alice = next(e for e in experts if e.person_id == "alice")
        assert alice.domain(D1.id).is_primary_expert
        assert not alice.domain(D1.id).is_unique_expert

    def test_sole_scorer_is_unique_and_tacit(self, analyzer, people):
        matrix = ExpertiseMatrix(scores={"carol": {D1.id: 50.0}})

        experts, deps = analyzer.analyze(matrix, [D1], people)

        assert len(deps) == 1
        assert deps[0].dependency_strength == 1.0
        assert deps[0].redundancy_level == 0.0
        assert deps[0].knowledge_type == KnowledgeType.TACIT
        assert experts[0].unique_knowledge_count == 1
        assert experts[0].criticality == Criticality.HIGH

    def test_redundancy_with_peers(self, analyzer, people):
        matrix = ExpertiseMatrix(
            scores={"alice": {D1.id: 60.0}, "bob": {D1.id: 20.0}, "carol": {D1.id: 20.0}}
        )

        _, deps = analyzer.analyze(matrix, [D1], people)

        by_person = {d.person_id: d for d in deps}
        assert by_person["alice"].redundancy_level == pytest.approx(0.4)
        assert by_person["alice"].knowledge_type == KnowledgeType.MIXED
        assert by_person["bob"].redundancy_level == pytest.approx(0.8)

    def test_experts_sorted_by_uniqueness_then_score(self, analyzer, people):
        matrix = ExpertiseMatrix(
            scores={
                "alice": {D1.id: 90.0, D2.id: 10.0},
                "bob": {D1.id: 40.0},
                "carol": {D2.id: 30.0},
            }
        )

        experts, _ = analyzer.analyze(matrix, [D1, D2], people)

        # carol is primary but not unique in D2 (alice also scores)
        assert [e.person_id for e in experts] == ["alice", "bob", "carol"]
        assert experts[0].overall_knowledge_score == pytest.approx(50.0)

    def test_unknown_person_ignored(self, analyzer, people):
        matrix = ExpertiseMatrix(scores={"mallory": {D1.id: 70.0}})

        experts, deps = analyzer.analyze(matrix, [D1], people)

        assert experts == []
        assert deps == []

    def test_empty_person_profile(self, people):
        profile = ExpertiseDistributionAnalyzer.build_person_knowledge(people[0], [])

        assert profile.domains == []
        assert profile.overall_knowledge_score == 0.0
        assert profile.criticality == Criticality.LOW


class TestDetermineCriticality:
    """Tests for person criticality."""

    @pytest.mark.parametrize(
        "unique,overall,expected",
        [
            (3, 10.0, Criticality.CRITICAL),
            (2, 75.0, Criticality.CRITICAL),
            (2, 60.0, Criticality.HIGH),
            (0, 85.0, Criticality.HIGH),
            (0, 60.0, Criticality.MEDIUM),
            (0, 50.0, Criticality.LOW),
        ],
    )
    def test_levels(self, unique, overall, expected):
        assert determine_criticality(unique, overall) == expected


class TestOrganizationCoverage:
    """Tests for weighted organization coverage."""

    def test_no_domains(self):
        assert calculate_organization_coverage([], []) == 0.0

    def test_covered_but_not_well_covered(self):
        deps = [dependency(D1.id, "alice", 1.0)]
        assert calculate_organization_coverage([D1, D2], deps) == pytest.approx(0.2)

    def test_well_covered(self):
        deps = [
            dependency(D1.id, "alice", 0.5),
            dependency(D1.id, "bob", 0.5),
            dependency(D2.id, "carol", 0.95),
            dependency(D2.id, "dave", 0.05),
        ]
        # Both covered, only D1 has two significant experts
        assert calculate_organization_coverage([D1, D2], deps) == pytest.approx(0.4 + 0.3)
