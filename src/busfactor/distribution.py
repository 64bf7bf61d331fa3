"""
Expertise Distribution Analyzer - Turns the matrix into a dependency graph.

Per domain, experts are ranked by score. The top scorer is the primary
expert; a lone scorer is also the unique expert. Each person's share of a
domain's total expertise is their dependency strength.
"""

from src.busfactor.matrix import ExpertiseMatrix
from src.busfactor.models import (
    Criticality,
    DomainExpertise,
    KnowledgeDependency,
    KnowledgeDomain,
    KnowledgeType,
    PersonKnowledge,
)
from src.sources.base import Person

# Dependency share above which knowledge is treated as tacit
TACIT_THRESHOLD = 0.7

# Minimum share for an expert to count towards "well covered"
SIGNIFICANT_SHARE = 0.1


class ExpertiseDistributionAnalyzer:
    """Ranks experts per domain and builds person profiles and dependencies."""

    def analyze(
        self,
        matrix: ExpertiseMatrix,
        domains: list[KnowledgeDomain],
        persons: list[Person],
    ) -> tuple[list[PersonKnowledge], list[KnowledgeDependency]]:
        """
        Analyze expertise distribution across the organization.

        Returns:
            (experts sorted by unique knowledge then overall score, dependencies)
        """
        person_map = {p.id: p for p in persons}
        rankings = self.rank_domain_experts(matrix, domains, person_map)

        dependencies = []
        for domain in domains:
            dependencies.extend(self._domain_dependencies(domain, rankings[domain.id]))

        domain_map = {d.id: d for d in domains}
        experts = []
        for person_id, scores in matrix.scores.items():
            person = person_map.get(person_id)
            if person is None:
                continue

            domain_expertise = []
            for domain_id, score in scores.items():
                domain = domain_map.get(domain_id)
                if domain is None:
                    continue

                ranking = rankings[domain_id]
                is_primary = bool(ranking) and ranking[0][0] == person_id
                domain_expertise.append(
                    DomainExpertise(
                        domain_id=domain_id,
                        domain_name=domain.name,
                        expertise_score=score,
                        is_unique_expert=is_primary and len(ranking) == 1,
                        is_primary_expert=is_primary,
                        contribution_factors=matrix.factors_for(person_id, domain_id),
                    )
                )

            experts.append(self.build_person_knowledge(person, domain_expertise))

        # Most irreplaceable first
        experts.sort(
            key=lambda e: (e.unique_knowledge_count, e.overall_knowledge_score),
            reverse=True,
        )

        return experts, dependencies

    @staticmethod
    def rank_domain_experts(
        matrix: ExpertiseMatrix,
        domains: list[KnowledgeDomain],
        person_map: dict[str, Person],
    ) -> dict[str, list[tuple[str, float]]]:
        """domain id -> [(person id, score)] with score > 0, best first."""
        rankings: dict[str, list[tuple[str, float]]] = {}
        for domain in domains:
            ranking = [
                (person_id, scores[domain.id])
                for person_id, scores in matrix.scores.items()
                if person_id in person_map and scores.get(domain.id, 0) > 0
            ]
            ranking.sort(key=lambda entry: entry[1], reverse=True)
            rankings[domain.id] = ranking
        return rankings

    @staticmethod
    def build_person_knowledge(
        person: Person, domain_expertise: list[DomainExpertise]
    ) -> PersonKnowledge:
        """Aggregate a person's domain entries into a profile."""
        overall = (
            sum(d.expertise_score for d in domain_expertise) / len(domain_expertise)
            if domain_expertise
            else 0.0
        )
        unique_count = sum(1 for d in domain_expertise if d.is_unique_expert)

        return PersonKnowledge(
            person_id=person.id,
            email=person.email,
            display_name=person.display_name,
            department=person.department,
            domains=domain_expertise,
            overall_knowledge_score=overall,
            unique_knowledge_count=unique_count,
            criticality=determine_criticality(unique_count, overall),
        )

    @staticmethod
    def _domain_dependencies(
        domain: KnowledgeDomain, ranking: list[tuple[str, float]]
    ) -> list[KnowledgeDependency]:
        total = sum(score for _, score in ranking)
        dependencies = []
        for person_id, score in ranking:
            strength = score / total if total > 0 else 0.0
            dependencies.append(
                KnowledgeDependency(
                    domain_id=domain.id,
                    person_id=person_id,
                    dependency_strength=strength,
                    redundancy_level=1 - strength if len(ranking) > 1 else 0.0,
                    knowledge_type=(
                        KnowledgeType.TACIT if strength > TACIT_THRESHOLD else KnowledgeType.MIXED
                    ),
                )
            )
        return dependencies


def determine_criticality(unique_knowledge_count: int, overall_score: float) -> Criticality:
    """Criticality from unique knowledge and overall expertise."""
    if unique_knowledge_count >= 3 or (unique_knowledge_count >= 2 and overall_score > 70):
        return Criticality.CRITICAL
    if unique_knowledge_count >= 1 or overall_score > 80:
        return Criticality.HIGH
    if overall_score > 50:
        return Criticality.MEDIUM
    return Criticality.LOW


def calculate_organization_coverage(
    domains: list[KnowledgeDomain], dependencies: list[KnowledgeDependency]
) -> float:
    """
    Weighted coverage: 40% for domains with any expert, 60% for domains
    with at least two experts holding a meaningful share.
    """
    if not domains:
        return 0.0

    covered = 0
    well_covered = 0
    for domain in domains:
        domain_deps = [d for d in dependencies if d.domain_id == domain.id]
        if not domain_deps:
            continue
        covered += 1
        significant = sum(1 for d in domain_deps if d.dependency_strength > SIGNIFICANT_SHARE)
        if significant >= 2:
            well_covered += 1

    return (covered / len(domains)) * 0.4 + (well_covered / len(domains)) * 0.6
