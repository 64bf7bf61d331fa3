"""
Risk Exposure Quantifier - Converts bus factor analysis into business terms.

- Financial risk (cost of knowledge loss)
- Operational risk (process disruption probability)
- Recovery cost estimation
- Mitigation priority scoring
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from src.busfactor.calculator import BusFactorCalculator, round_half_up
from src.busfactor.models import (
    BusFactorScore,
    Criticality,
    DomainType,
    OrganizationBusFactor,
    RiskLevel,
    SinglePointOfFailure,
)
from src.busfactor.schemas import RiskQuantificationOptions, parse_options, require_organization_id

logger = structlog.get_logger()

# Annual departure probability
DEPARTURE_PROBABILITY = {
    "normal": 0.15,  # Baseline turnover
    "stressed": 0.25,
    "critical": 0.30,  # Unique knowledge across several domains
}

WORST_CASE_MULTIPLIERS = {
    RiskLevel.CRITICAL: 2.5,
    RiskLevel.HIGH: 2.0,
    RiskLevel.MEDIUM: 1.5,
    RiskLevel.LOW: 1.2,
}

DOMAIN_RISK_SCORES = {
    RiskLevel.CRITICAL: 90,
    RiskLevel.HIGH: 70,
    RiskLevel.MEDIUM: 50,
    RiskLevel.LOW: 30,
}

DOMAIN_EXPOSURE_MULTIPLIERS = {
    RiskLevel.CRITICAL: 2.0,
    RiskLevel.HIGH: 1.5,
    RiskLevel.MEDIUM: 1.0,
    RiskLevel.LOW: 0.5,
}

TOP_RISK_LIMIT = 10


class RiskCategoryType(str, Enum):
    OPERATIONAL = "operational"
    FINANCIAL = "financial"
    STRATEGIC = "strategic"
    COMPLIANCE = "compliance"


class RiskEntityType(str, Enum):
    PERSON = "person"
    DOMAIN = "domain"


class MitigationStatus(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass
class RiskComponent:
    name: str
    amount: float
    percentage: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "amount": self.amount,
            "percentage": self.percentage,
            "description": self.description,
        }


@dataclass
class MonetaryRisk:
    expected_loss: int  # Probability-weighted annual loss
    worst_case_loss: int
    currency: str
    confidence: float  # 0-1
    components: list[RiskComponent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "expectedLoss": self.expected_loss,
            "worstCaseLoss": self.worst_case_loss,
            "currency": self.currency,
            "confidence": self.confidence,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass
class RiskCategory:
    category: RiskCategoryType
    risk_score: float  # 0-100
    exposure: int
    probability: float  # 0-1
    primary_factors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "riskScore": self.risk_score,
            "exposure": self.exposure,
            "probability": self.probability,
            "primaryFactors": list(self.primary_factors),
        }


@dataclass
class RankedRisk:
    rank: int
    type: RiskEntityType
    entity_id: str
    entity_name: str
    risk_score: float
    exposure_amount: int
    probability: float
    mitigation_cost: int
    roi: float  # Return on mitigation investment
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "type": self.type.value,
            "entityId": self.entity_id,
            "entityName": self.entity_name,
            "riskScore": self.risk_score,
            "exposureAmount": self.exposure_amount,
            "probability": self.probability,
            "mitigationCost": self.mitigation_cost,
            "roi": self.roi,
            "description": self.description,
        }


@dataclass
class MitigationPriority:
    priority: int
    action: str
    target_entity: str
    estimated_cost: int
    risk_reduction: int
    timeframe: str
    dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "action": self.action,
            "targetEntity": self.target_entity,
            "estimatedCost": self.estimated_cost,
            "riskReduction": self.risk_reduction,
            "timeframe": self.timeframe,
            "dependencies": list(self.dependencies),
        }


@dataclass
class ScenarioAnalysis:
    scenario: str
    probability: float
    impact: MonetaryRisk
    affected_areas: list[str]
    recovery_time: str
    mitigation_status: MitigationStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "probability": self.probability,
            "impact": self.impact.to_dict(),
            "affectedAreas": list(self.affected_areas),
            "recoveryTime": self.recovery_time,
            "mitigationStatus": self.mitigation_status.value,
        }


@dataclass
class RiskExposureReport:
    organization_id: str
    total_risk_exposure: MonetaryRisk
    risk_breakdown: list[RiskCategory]
    top_risks: list[RankedRisk]
    mitigation_priorities: list[MitigationPriority]
    scenario_analysis: list[ScenarioAnalysis]
    executive_summary: str
    analyzed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "totalRiskExposure": self.total_risk_exposure.to_dict(),
            "riskBreakdown": [c.to_dict() for c in self.risk_breakdown],
            "topRisks": [r.to_dict() for r in self.top_risks],
            "mitigationPriorities": [p.to_dict() for p in self.mitigation_priorities],
            "scenarioAnalysis": [s.to_dict() for s in self.scenario_analysis],
            "executiveSummary": self.executive_summary,
            "analyzedAt": self.analyzed_at.isoformat(),
        }


class RiskExposureQuantifier:
    """Prices knowledge concentration risk from a bus factor report."""

    def __init__(self, calculator: BusFactorCalculator):
        self.calculator = calculator

    async def quantify_risk_exposure(
        self, organization_id: str, **options: Any
    ) -> RiskExposureReport:
        """
        Generate a risk exposure report.

        Args:
            organization_id: Organization to analyze
            **options: RiskQuantificationOptions fields (bus factor options
                plus cost assumptions)
        """
        require_organization_id(organization_id)
        costs = parse_options(RiskQuantificationOptions, options)

        bus_factor = await self.calculator.calculate_organization_bus_factor(
            organization_id,
            lookback_days=costs.lookback_days,
            expertise_threshold=costs.expertise_threshold,
            primary_threshold=costs.primary_threshold,
        )

        report = self.analyze(bus_factor, costs)

        logger.info(
            "Risk exposure quantified",
            organization_id=organization_id,
            expected_loss=report.total_risk_exposure.expected_loss,
            worst_case_loss=report.total_risk_exposure.worst_case_loss,
            currency=costs.currency,
            top_risks=len(report.top_risks),
        )

        return report

    async def quantify_person_risk(
        self, organization_id: str, person_id: str, **options: Any
    ) -> RankedRisk | None:
        """Ranked risk for one person, or None if they are not a single point of failure."""
        require_organization_id(organization_id)
        costs = parse_options(RiskQuantificationOptions, options)

        bus_factor = await self.calculator.calculate_organization_bus_factor(
            organization_id,
            lookback_days=costs.lookback_days,
            expertise_threshold=costs.expertise_threshold,
            primary_threshold=costs.primary_threshold,
        )

        spof = next(
            (s for s in bus_factor.single_points_of_failure if s.person_id == person_id), None
        )
        if spof is None:
            return None

        return self.calculate_person_risk(spof, costs)

    def analyze(
        self, bus_factor: OrganizationBusFactor, costs: RiskQuantificationOptions
    ) -> RiskExposureReport:
        """Build the report from an existing bus factor analysis."""
        total = self.calculate_total_risk_exposure(bus_factor, costs)
        top_risks = self.rank_top_risks(bus_factor, costs)

        return RiskExposureReport(
            organization_id=bus_factor.organization_id,
            total_risk_exposure=total,
            risk_breakdown=self.calculate_risk_breakdown(bus_factor, costs),
            top_risks=top_risks,
            mitigation_priorities=self.generate_mitigation_priorities(
                bus_factor, top_risks, costs
            ),
            scenario_analysis=self.run_scenario_analysis(bus_factor, costs),
            executive_summary=self.generate_executive_summary(bus_factor, total, top_risks),
            analyzed_at=bus_factor.analyzed_at,
        )

    def calculate_total_risk_exposure(
        self, bus_factor: OrganizationBusFactor, costs: RiskQuantificationOptions
    ) -> MonetaryRisk:
        spofs = bus_factor.single_points_of_failure
        critical_domains = [
            d for d in bus_factor.domain_scores if d.risk_level == RiskLevel.CRITICAL
        ]
        weekly_revenue = costs.revenue_per_employee / 52

        amounts = [
            (
                "Replacement & Training",
                len(spofs) * (costs.hiring_cost + costs.avg_salary / 52 * costs.training_weeks),
                f"Cost to replace and train {len(spofs)} critical person(s)",
            ),
            (
                "Productivity Impact",
                # Half productivity during recovery
                sum(weekly_revenue * s.impact_if_lost.estimated_recovery_weeks * 0.5 for s in spofs),
                "Revenue impact during knowledge recovery period",
            ),
            (
                "Project Delay Risk",
                len(critical_domains) * costs.project_value * 0.3,
                f"Potential delays for {len(critical_domains)} critical domain(s)",
            ),
            (
                "Opportunity Cost",
                sum(s.impact_if_lost.domains_affected * costs.project_value * 0.1 for s in spofs),
                "Lost opportunities during recovery period",
            ),
        ]

        total = sum(amount for _, amount, _ in amounts)
        components = [
            RiskComponent(
                name=name,
                amount=amount,
                percentage=int(round_half_up(amount / total * 100)) if total > 0 else 0,
                description=description,
            )
            for name, amount, description in amounts
        ]

        expected_loss = total * self._average_departure_probability(spofs)
        worst_case = total * WORST_CASE_MULTIPLIERS[bus_factor.overall_risk_level]

        return MonetaryRisk(
            expected_loss=int(round_half_up(expected_loss)),
            worst_case_loss=int(round_half_up(worst_case)),
            currency=costs.currency,
            confidence=self._confidence(bus_factor),
            components=components,
        )

    def calculate_risk_breakdown(
        self, bus_factor: OrganizationBusFactor, costs: RiskQuantificationOptions
    ) -> list[RiskCategory]:
        scores = bus_factor.domain_scores
        spofs = bus_factor.single_points_of_failure
        process_domains = [d for d in scores if d.domain_type == DomainType.PROCESS]

        # Operational
        if process_domains:
            avg_process_bf = sum(d.bus_factor for d in process_domains) / len(process_domains)
            operational_score = max(0.0, 100 - avg_process_bf * 20)
        else:
            operational_score = 20.0
        operational_exposure = sum(self.domain_exposure(d, costs) for d in process_domains)
        operational_factors = []
        critical_processes = [d for d in process_domains if d.risk_level == RiskLevel.CRITICAL]
        if critical_processes:
            operational_factors.append(f"{len(critical_processes)} critical process(es)")
        if bus_factor.overall_bus_factor <= 2:
            operational_factors.append("Low overall bus factor")

        # Financial
        financial_score = min(100, len(spofs) * 20 + bus_factor.critical_domains_count * 15)
        financial_exposure = len(spofs) * (
            costs.avg_salary + costs.hiring_cost + costs.revenue_per_employee * 0.25
        )
        financial_factors = [f"{len(spofs)} SPOF(s)"] if spofs else []
        financial_factors.append(
            f"Knowledge distribution: {bus_factor.knowledge_distribution_score}%"
        )

        # Strategic
        strategic_score = max(0, 100 - bus_factor.knowledge_distribution_score)
        strategic_exposure = (
            sum(1 for d in scores if d.risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH))
            * costs.project_value
        )
        strategic_factors = []
        if bus_factor.critical_domains_count > 0:
            strategic_factors.append(f"{bus_factor.critical_domains_count} critical domain(s)")
        unique_areas = sum(len(s.unique_domains) for s in spofs)
        if unique_areas > 0:
            strategic_factors.append(f"{unique_areas} unique knowledge area(s)")

        # Compliance
        compliance_score = min(50, bus_factor.critical_domains_count * 10)
        compliance_exposure = compliance_score * costs.project_value * 0.1
        undocumented = sum(1 for d in scores if d.coverage < 0.3)
        compliance_factors = (
            [f"{undocumented} poorly documented domain(s)"] if undocumented > 0 else []
        )

        return [
            self._category(
                RiskCategoryType.OPERATIONAL, operational_score, operational_exposure, operational_factors
            ),
            self._category(
                RiskCategoryType.FINANCIAL, financial_score, financial_exposure, financial_factors
            ),
            self._category(
                RiskCategoryType.STRATEGIC, strategic_score, strategic_exposure, strategic_factors
            ),
            self._category(
                RiskCategoryType.COMPLIANCE, compliance_score, compliance_exposure, compliance_factors
            ),
        ]

    def rank_top_risks(
        self, bus_factor: OrganizationBusFactor, costs: RiskQuantificationOptions
    ) -> list[RankedRisk]:
        risks = [self.calculate_person_risk(s, costs) for s in bus_factor.single_points_of_failure]
        risks.extend(
            self.calculate_domain_risk(d, costs)
            for d in bus_factor.domain_scores
            if d.risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH)
        )

        risks.sort(key=lambda r: r.risk_score * r.exposure_amount, reverse=True)
        for index, risk in enumerate(risks):
            risk.rank = index + 1

        return risks[:TOP_RISK_LIMIT]

    def calculate_person_risk(
        self, spof: SinglePointOfFailure, costs: RiskQuantificationOptions
    ) -> RankedRisk:
        is_critical = spof.criticality == Criticality.CRITICAL
        probability = DEPARTURE_PROBABILITY["critical" if is_critical else "stressed"]

        exposure = (
            spof.impact_if_lost.domains_affected * costs.project_value
            + spof.impact_if_lost.estimated_recovery_weeks * (costs.avg_salary / 52)
            + costs.hiring_cost
        )
        risk_score = min(100, len(spof.unique_domains) * 25 + (25 if is_critical else 0))
        # Training time plus documentation per domain
        mitigation_cost = costs.avg_salary * 0.1 + len(spof.unique_domains) * 5000

        return RankedRisk(
            rank=0,
            type=RiskEntityType.PERSON,
            entity_id=spof.person_id,
            entity_name=spof.label,
            risk_score=risk_score,
            exposure_amount=int(round_half_up(exposure)),
            probability=probability,
            mitigation_cost=int(round_half_up(mitigation_cost)),
            roi=self._roi(exposure, probability, mitigation_cost),
            description=f"Unique expert for: {', '.join(spof.unique_domains)}",
        )

    def calculate_domain_risk(
        self, domain: BusFactorScore, costs: RiskQuantificationOptions
    ) -> RankedRisk:
        exposure = self.domain_exposure(domain, costs)
        probability = (1 - domain.redundancy) * DEPARTURE_PROBABILITY["normal"]
        # Cross-training per key expert plus documentation
        mitigation_cost = costs.avg_salary * 0.15 * len(domain.key_experts) + 10000

        return RankedRisk(
            rank=0,
            type=RiskEntityType.DOMAIN,
            entity_id=domain.domain_id,
            entity_name=domain.domain_name,
            risk_score=DOMAIN_RISK_SCORES[domain.risk_level],
            exposure_amount=int(round_half_up(exposure)),
            probability=probability,
            mitigation_cost=int(round_half_up(mitigation_cost)),
            roi=self._roi(exposure, probability, mitigation_cost),
            description=domain.vulnerability_assessment,
        )

    @staticmethod
    def domain_exposure(domain: BusFactorScore, costs: RiskQuantificationOptions) -> float:
        base = costs.project_value * 2 if domain.domain_type == DomainType.PROCESS else costs.project_value
        return base * DOMAIN_EXPOSURE_MULTIPLIERS[domain.risk_level] * (1 - domain.redundancy)

    def generate_mitigation_priorities(
        self,
        bus_factor: OrganizationBusFactor,
        top_risks: list[RankedRisk],
        costs: RiskQuantificationOptions,
    ) -> list[MitigationPriority]:
        priorities: list[MitigationPriority] = []

        def add(action: str, target: str, cost: float, reduction: float, timeframe: str) -> None:
            priorities.append(
                MitigationPriority(
                    priority=len(priorities) + 1,
                    action=action,
                    target_entity=target,
                    estimated_cost=int(round_half_up(cost)),
                    risk_reduction=int(round_half_up(reduction)),
                    timeframe=timeframe,
                )
            )

        # Highest return on mitigation first
        for risk in sorted(top_risks, key=lambda r: r.roi, reverse=True)[:5]:
            expected = risk.exposure_amount * risk.probability
            if risk.type == RiskEntityType.PERSON:
                add(
                    f"Cross-train backup for {risk.entity_name}",
                    risk.entity_name,
                    risk.mitigation_cost,
                    expected * 0.7,
                    "4-8 weeks",
                )
                add(
                    f"Document critical knowledge from {risk.entity_name}",
                    risk.entity_name,
                    risk.mitigation_cost * 0.3,
                    expected * 0.3,
                    "2-4 weeks",
                )
            else:
                add(
                    f"Establish knowledge sharing program for {risk.entity_name}",
                    risk.entity_name,
                    risk.mitigation_cost,
                    expected * 0.6,
                    "6-12 weeks",
                )

        if bus_factor.knowledge_distribution_score < 50:
            add(
                "Implement organization-wide knowledge management system",
                "Organization",
                costs.project_value,
                sum(r.exposure_amount * r.probability for r in top_risks) * 0.2,
                "3-6 months",
            )

        return priorities

    def run_scenario_analysis(
        self, bus_factor: OrganizationBusFactor, costs: RiskQuantificationOptions
    ) -> list[ScenarioAnalysis]:
        scenarios = []
        spofs = bus_factor.single_points_of_failure

        # Key person departure
        if spofs:
            top = spofs[0]
            impact = top.impact_if_lost
            scenarios.append(
                ScenarioAnalysis(
                    scenario=f"{top.label} leaves unexpectedly",
                    probability=DEPARTURE_PROBABILITY["critical"],
                    impact=self._scenario_impact(
                        impact.domains_affected * costs.project_value
                        + impact.estimated_recovery_weeks * (costs.revenue_per_employee / 52),
                        impact.domains_affected * costs.project_value * 2,
                        costs.currency,
                        0.7,
                    ),
                    affected_areas=list(top.unique_domains),
                    recovery_time=f"{impact.estimated_recovery_weeks} weeks",
                    mitigation_status=MitigationStatus.NONE,
                )
            )

        # Critical process disruption
        critical_process = next(
            (
                d
                for d in bus_factor.domain_scores
                if d.domain_type == DomainType.PROCESS and d.risk_level == RiskLevel.CRITICAL
            ),
            None,
        )
        if critical_process is not None:
            scenarios.append(
                ScenarioAnalysis(
                    scenario=f"{critical_process.domain_name} process disruption",
                    probability=(1 - critical_process.coverage) * 0.2,
                    impact=self._scenario_impact(
                        costs.project_value * 3, costs.project_value * 5, costs.currency, 0.6
                    ),
                    affected_areas=[critical_process.domain_name],
                    recovery_time="2-4 weeks",
                    mitigation_status=(
                        MitigationStatus.PARTIAL
                        if critical_process.redundancy > 0.3
                        else MitigationStatus.NONE
                    ),
                )
            )

        # Two departures, with a correlation factor
        if len(spofs) >= 2:
            pair = spofs[:2]
            scenarios.append(
                ScenarioAnalysis(
                    scenario="Two key people leave within 6 months",
                    probability=DEPARTURE_PROBABILITY["normal"] ** 2 * 3,
                    impact=self._scenario_impact(
                        sum(s.impact_if_lost.domains_affected * costs.project_value for s in pair),
                        costs.revenue_per_employee * 4,
                        costs.currency,
                        0.5,
                    ),
                    affected_areas=[d for s in pair for d in s.unique_domains],
                    recovery_time="3-6 months",
                    mitigation_status=MitigationStatus.NONE,
                )
            )

        return scenarios

    @staticmethod
    def generate_executive_summary(
        bus_factor: OrganizationBusFactor,
        total: MonetaryRisk,
        top_risks: list[RankedRisk],
    ) -> str:
        parts = [
            f"Organization bus factor: {bus_factor.overall_bus_factor} "
            f"({bus_factor.overall_risk_level.value} risk)",
            f"{len(bus_factor.single_points_of_failure)} single point(s) of failure identified",
            f"{bus_factor.critical_domains_count} critical and "
            f"{bus_factor.high_risk_domains_count} high-risk domains",
            f"Annual expected risk exposure: {total.currency} {total.expected_loss:,}",
            f"Worst case exposure: {total.currency} {total.worst_case_loss:,}",
        ]

        if top_risks:
            top = top_risks[0]
            parts.append(
                f"Top priority: {top.entity_name} ({top.type.value}) "
                f"- ROI on mitigation: {top.roi}x"
            )

        if bus_factor.overall_risk_level == RiskLevel.CRITICAL:
            parts.append(
                "Immediate action required: Initiate knowledge transfer program "
                "for critical persons and domains."
            )
        elif bus_factor.overall_risk_level == RiskLevel.HIGH:
            parts.append("Recommended: Implement cross-training within 30 days for high-risk areas.")
        else:
            parts.append("Knowledge distribution is acceptable. Maintain periodic reviews.")

        return "\n\n".join(parts)

    @staticmethod
    def _average_departure_probability(spofs: list[SinglePointOfFailure]) -> float:
        if not spofs:
            return DEPARTURE_PROBABILITY["normal"]
        probabilities = [
            DEPARTURE_PROBABILITY["critical" if s.criticality == Criticality.CRITICAL else "stressed"]
            for s in spofs
        ]
        return sum(probabilities) / len(probabilities)

    @staticmethod
    def _confidence(bus_factor: OrganizationBusFactor) -> float:
        """Rough data-quality confidence."""
        domain_coverage = 0.3 if bus_factor.domain_scores else 0.0
        spofs_identified = 0.3 if bus_factor.single_points_of_failure else 0.1
        distribution = bus_factor.knowledge_distribution_score / 100 * 0.4
        return min(1.0, domain_coverage + spofs_identified + distribution)

    @staticmethod
    def _roi(exposure: float, probability: float, mitigation_cost: float) -> float:
        if mitigation_cost <= 0:
            return 0.0
        return round_half_up((exposure * probability - mitigation_cost) / mitigation_cost, 2)

    @staticmethod
    def _category(
        category: RiskCategoryType, score: float, exposure: float, factors: list[str]
    ) -> RiskCategory:
        return RiskCategory(
            category=category,
            risk_score=score,
            exposure=int(round_half_up(exposure)),
            probability=min(1.0, score / 100 * 0.5),
            primary_factors=factors,
        )

    @staticmethod
    def _scenario_impact(
        expected: float, worst_case: float, currency: str, confidence: float
    ) -> MonetaryRisk:
        return MonetaryRisk(
            expected_loss=int(round_half_up(expected)),
            worst_case_loss=int(round_half_up(worst_case)),
            currency=currency,
            confidence=confidence,
        )
