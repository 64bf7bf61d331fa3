"""
Bus Factor Calculator - Knowledge concentration risk per domain and organization.

Bus factor = the number of top experts that must be retained to keep 80% of
a domain's demonstrated expertise. A bus factor of 1 means a single point
of failure exists.
"""

import math
from typing import Any

import structlog

from src.busfactor.builder import KnowledgeDependencyBuilder
from src.busfactor.models import (
    PROCESS_PREFIX,
    BusFactorScore,
    Criticality,
    DomainType,
    ExpertSummary,
    ImpactAssessment,
    KnowledgeDomain,
    KnowledgeGraph,
    OrganizationBusFactor,
    PersonKnowledge,
    RiskLevel,
    SinglePointOfFailure,
)
from src.busfactor.schemas import BusFactorOptions, parse_options, require_organization_id

logger = structlog.get_logger()

# Upper bus factor bound for each risk level
BUS_FACTOR_THRESHOLDS = {
    RiskLevel.CRITICAL: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.MEDIUM: 3,
}

# Share of a domain's expertise the retained experts must hold
COVERAGE_TARGET = 0.8

# Process and departmental knowledge loss has a wider blast radius than a topic
DOMAIN_TYPE_WEIGHTS = {
    DomainType.PROCESS: 1.5,
    DomainType.DEPARTMENT: 1.2,
}

KEY_EXPERT_LIMIT = 5
RECOVERY_BASE_WEEKS = 4


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.5 -> 3)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def determine_risk_level(bus_factor: int) -> RiskLevel:
    """Risk level from bus factor."""
    for level, limit in BUS_FACTOR_THRESHOLDS.items():
        if bus_factor <= limit:
            return level
    return RiskLevel.LOW


class BusFactorCalculator:
    """Computes bus factors, single points of failure and recommendations."""

    def __init__(self, builder: KnowledgeDependencyBuilder):
        self.builder = builder

    async def calculate_organization_bus_factor(
        self, organization_id: str, **options: Any
    ) -> OrganizationBusFactor:
        """
        Calculate bus factor scores for an entire organization.

        Args:
            organization_id: Organization to analyze
            **options: BusFactorOptions fields (lookback_days,
                expertise_threshold, primary_threshold)

        Returns:
            OrganizationBusFactor with per-domain scores, SPOFs and recommendations
        """
        require_organization_id(organization_id)
        opts = parse_options(BusFactorOptions, options)

        graph = await self.builder.build_knowledge_graph(
            organization_id,
            lookback_days=opts.lookback_days,
            min_activity_threshold=opts.expertise_threshold / 10,
        )

        return self.analyze_graph(
            organization_id,
            graph,
            expertise_threshold=opts.expertise_threshold,
        )

    async def calculate_domain_bus_factor(
        self, organization_id: str, domain_id: str, **options: Any
    ) -> BusFactorScore | None:
        """Bus factor for one domain, or None if the domain does not exist."""
        require_organization_id(organization_id)
        opts = parse_options(BusFactorOptions, options)

        graph = await self.builder.build_knowledge_graph(
            organization_id, lookback_days=opts.lookback_days
        )

        domain = graph.domain(domain_id)
        if domain is None:
            return None

        return self.calculate_single_domain_bus_factor(domain, graph, opts.expertise_threshold)

    def analyze_graph(
        self,
        organization_id: str,
        graph: KnowledgeGraph,
        expertise_threshold: float = 30.0,
    ) -> OrganizationBusFactor:
        """Roll an already-built graph up into an organization report."""
        domain_scores = [
            self.calculate_single_domain_bus_factor(domain, graph, expertise_threshold)
            for domain in graph.domains
        ]
        # Riskiest (lowest bus factor) first
        domain_scores.sort(key=lambda s: s.bus_factor)

        spofs = self.identify_single_points_of_failure(graph, domain_scores)
        overall_bus_factor = self.calculate_overall_bus_factor(domain_scores)
        overall_risk_level = determine_risk_level(overall_bus_factor)

        report = OrganizationBusFactor(
            organization_id=organization_id,
            overall_bus_factor=overall_bus_factor,
            overall_risk_level=overall_risk_level,
            domain_scores=domain_scores,
            critical_domains_count=sum(
                1 for s in domain_scores if s.risk_level == RiskLevel.CRITICAL
            ),
            high_risk_domains_count=sum(
                1 for s in domain_scores if s.risk_level == RiskLevel.HIGH
            ),
            single_points_of_failure=spofs,
            knowledge_distribution_score=self.calculate_knowledge_distribution(
                graph, domain_scores
            ),
            recommendations=self.generate_recommendations(
                overall_risk_level, spofs, domain_scores
            ),
            analyzed_at=self.builder.now(),
        )

        logger.info(
            "Bus factor analysis complete",
            organization_id=organization_id,
            overall_bus_factor=overall_bus_factor,
            overall_risk_level=overall_risk_level.value,
            domains=len(domain_scores),
            critical_domains=report.critical_domains_count,
            single_points_of_failure=len(spofs),
        )

        return report

    def calculate_single_domain_bus_factor(
        self,
        domain: KnowledgeDomain,
        graph: KnowledgeGraph,
        expertise_threshold: float,
    ) -> BusFactorScore:
        """Greedy cover: count top experts until 80% of the expertise is held."""
        experts: list[ExpertSummary] = []
        qualified = 0

        for dependency in graph.dependencies_for(domain.id):
            person = graph.expert(dependency.person_id)
            if person is None:
                continue
            expertise = person.domain(domain.id)
            if expertise is None:
                continue

            if expertise.expertise_score >= expertise_threshold:
                qualified += 1

            experts.append(
                ExpertSummary(
                    person_id=person.person_id,
                    email=person.email,
                    display_name=person.display_name,
                    department=person.department,
                    expertise_score=expertise.expertise_score,
                    dependency_strength=dependency.dependency_strength,
                    is_unique_expert=expertise.is_unique_expert,
                    is_primary_expert=expertise.is_primary_expert,
                )
            )

        experts.sort(key=lambda e: e.dependency_strength, reverse=True)

        bus_factor = 0
        coverage = 0.0
        for expert in experts:
            if expert.expertise_score < expertise_threshold:
                continue
            bus_factor += 1
            coverage += expert.dependency_strength
            if coverage >= COVERAGE_TARGET:
                break

        redundancy = min(1.0, (qualified - 1) / 3) if qualified > 1 else 0.0

        return BusFactorScore(
            domain_id=domain.id,
            domain_name=domain.name,
            domain_type=domain.type,
            bus_factor=bus_factor,
            risk_level=determine_risk_level(bus_factor),
            coverage=min(1.0, coverage),
            redundancy=redundancy,
            key_experts=experts[:KEY_EXPERT_LIMIT],
            vulnerability_assessment=self.assess_vulnerability(bus_factor, experts, coverage),
        )

    def identify_single_points_of_failure(
        self,
        graph: KnowledgeGraph,
        domain_scores: list[BusFactorScore],
    ) -> list[SinglePointOfFailure]:
        """Unique experts, plus the primary expert of every bus-factor-1 domain."""
        spofs: dict[str, SinglePointOfFailure] = {}

        for expert in graph.experts:
            unique_domains = [d.domain_name for d in expert.domains if d.is_unique_expert]
            if not unique_domains:
                continue
            spofs[expert.person_id] = SinglePointOfFailure(
                person_id=expert.person_id,
                email=expert.email,
                display_name=expert.display_name,
                department=expert.department,
                unique_domains=unique_domains,
                criticality=Criticality.CRITICAL if len(unique_domains) >= 2 else Criticality.HIGH,
                impact_if_lost=self.assess_impact_if_lost(expert, graph),
            )

        for score in domain_scores:
            if score.bus_factor != 1:
                continue

            primary = next((e for e in score.key_experts if e.is_primary_expert), None)
            if primary is None:
                continue

            existing = spofs.get(primary.person_id)
            if existing is not None:
                existing.add_domain(score.domain_name)
                continue

            expert = graph.expert(primary.person_id)
            if expert is None:
                continue
            spofs[primary.person_id] = SinglePointOfFailure(
                person_id=primary.person_id,
                email=primary.email,
                display_name=primary.display_name,
                department=primary.department,
                unique_domains=[score.domain_name],
                criticality=Criticality.HIGH,
                impact_if_lost=self.assess_impact_if_lost(expert, graph),
            )

        # Critical first, then by number of domains held
        return sorted(
            spofs.values(),
            key=lambda s: (s.criticality != Criticality.CRITICAL, -len(s.unique_domains)),
        )

    def assess_impact_if_lost(
        self, expert: PersonKnowledge, graph: KnowledgeGraph
    ) -> ImpactAssessment:
        """Estimate the impact of a person leaving."""
        affected = [d for d in expert.domains if d.is_unique_expert or d.is_primary_expert]
        domains_affected = len(affected)
        processes_affected = sum(1 for d in affected if d.domain_id.startswith(PROCESS_PREFIX))

        total_knowledge = sum(e.overall_knowledge_score for e in graph.experts)
        knowledge_loss_percent = (
            expert.overall_knowledge_score / total_knowledge * 100 if total_knowledge > 0 else 0.0
        )

        # Baseline scaled by breadth (domains) and depth (uniqueness)
        complexity_multiplier = 1 + domains_affected * 0.5
        uniqueness_multiplier = 1 + expert.unique_knowledge_count * 0.75
        recovery_weeks = int(
            round_half_up(RECOVERY_BASE_WEEKS * complexity_multiplier * uniqueness_multiplier)
        )

        return ImpactAssessment(
            domains_affected=domains_affected,
            processes_affected=processes_affected,
            knowledge_loss_percent=round_half_up(knowledge_loss_percent, 1),
            estimated_recovery_weeks=recovery_weeks,
            description=self._impact_description(
                processes_affected, expert.unique_knowledge_count, recovery_weeks
            ),
        )

    @staticmethod
    def calculate_overall_bus_factor(domain_scores: list[BusFactorScore]) -> int:
        """Minimum type-weighted bus factor across domains."""
        if not domain_scores:
            return 0

        weighted = [
            score.bus_factor / DOMAIN_TYPE_WEIGHTS.get(score.domain_type, 1.0)
            for score in domain_scores
        ]
        return int(round_half_up(min(weighted)))

    @staticmethod
    def calculate_knowledge_distribution(
        graph: KnowledgeGraph, domain_scores: list[BusFactorScore]
    ) -> int:
        """Organization knowledge health, 0-100."""
        if not domain_scores:
            return 0

        avg_redundancy = sum(s.redundancy for s in domain_scores) / len(domain_scores)
        multi_expert_rate = sum(1 for s in domain_scores if s.bus_factor > 1) / len(domain_scores)
        spof_penalty = max(0.0, 1 - len(graph.single_points_of_failure) * 0.1)

        score = (
            avg_redundancy * 25
            + multi_expert_rate * 30
            + graph.organization_coverage * 25
            + spof_penalty * 20
        )
        return int(round_half_up(score))

    @staticmethod
    def assess_vulnerability(
        bus_factor: int, experts: list[ExpertSummary], coverage: float
    ) -> str:
        """Narrative for a domain's vulnerability."""
        if bus_factor == 0:
            return "No identified experts. Knowledge may be undocumented or external."

        if bus_factor == 1:
            expert = experts[0]
            share = int(round_half_up(expert.dependency_strength * 100))
            return f"Critical: Single expert ({expert.label}) holds {share}% of knowledge."

        if bus_factor == 2:
            return (
                f"High risk: Only {bus_factor} qualified experts. "
                "Loss of either would significantly impact operations."
            )

        if coverage < 0.5:
            return (
                f"Moderate risk: {bus_factor} experts identified but coverage "
                f"is incomplete ({int(round_half_up(coverage * 100))}%)."
            )

        return (
            f"Acceptable: {bus_factor} experts with "
            f"{int(round_half_up(coverage * 100))}% knowledge coverage."
        )

    @staticmethod
    def _impact_description(
        processes_affected: int, unique_knowledge: int, recovery_weeks: int
    ) -> str:
        parts = []
        if unique_knowledge > 0:
            parts.append(f"{unique_knowledge} domain(s) would lose their only expert")
        if processes_affected > 0:
            parts.append(f"{processes_affected} process(es) would be impacted")
        parts.append(f"Estimated {recovery_weeks} weeks to rebuild knowledge")
        return ". ".join(parts) + "."

    @staticmethod
    def generate_recommendations(
        overall_risk_level: RiskLevel,
        spofs: list[SinglePointOfFailure],
        domain_scores: list[BusFactorScore],
    ) -> list[str]:
        """Ordered, de-duplicated recommendations."""
        recommendations = []

        if overall_risk_level == RiskLevel.CRITICAL:
            recommendations.append("URGENT: Immediate knowledge transfer program needed")
        elif overall_risk_level == RiskLevel.HIGH:
            recommendations.append("Priority: Initiate cross-training within 30 days")

        if spofs:
            critical_spofs = [s for s in spofs if s.criticality == Criticality.CRITICAL]
            if critical_spofs:
                recommendations.append(
                    f"{len(critical_spofs)} critical single points of failure identified "
                    "- assign backup experts immediately"
                )
            for spof in spofs[:3]:
                recommendations.append(
                    f"Assign backup for {spof.label}: {', '.join(spof.unique_domains[:2])}"
                )

        critical_domains = [s for s in domain_scores if s.risk_level == RiskLevel.CRITICAL]
        if critical_domains:
            names = ", ".join(s.domain_name for s in critical_domains[:3])
            recommendations.append(
                f"Document and cross-train for {len(critical_domains)} critical domain(s): {names}"
            )

        if any(s.coverage < 0.5 for s in domain_scores):
            recommendations.append("Create documentation for domains with low coverage")

        if not spofs and overall_risk_level == RiskLevel.LOW:
            recommendations.append(
                "Knowledge is well distributed. Maintain current practices and periodic reviews."
            )

        return list(dict.fromkeys(recommendations))
