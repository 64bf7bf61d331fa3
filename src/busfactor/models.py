"""
Knowledge concentration data model.

Every structure here is derived and recomputed per run. Serialization uses
camelCase keys so that any RPC layer wrapping the engine emits the field
names callers already know.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class DomainType(str, Enum):
    """Where a knowledge domain was discovered."""

    PROCESS = "process"
    DEPARTMENT = "department"
    TOPIC = "topic"
    SYSTEM = "system"
    CUSTOM = "custom"


class ContributionType(str, Enum):
    """Behavioral signals that evidence expertise."""

    PROCESS_PARTICIPATION = "process_participation"
    COMMUNICATION_HUB = "communication_hub"
    DOCUMENT_AUTHORSHIP = "document_authorship"
    MEETING_PRESENCE = "meeting_presence"
    QUESTION_RESPONDER = "question_responder"
    TASK_OWNERSHIP = "task_ownership"
    MENTORING_ACTIVITY = "mentoring_activity"


class Criticality(str, Enum):
    """How critical a person is to the organization's knowledge."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    """Risk level derived from a bus factor."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class KnowledgeType(str, Enum):
    """Whether domain knowledge is written down or held in someone's head."""

    EXPLICIT = "explicit"
    TACIT = "tacit"
    MIXED = "mixed"


# Domain id prefixes, namespaced by discovery source
PROCESS_PREFIX = "process:"
DEPARTMENT_PREFIX = "dept:"
TOPIC_PREFIX = "topic:"
SYSTEM_PREFIX = "system:"


@dataclass(frozen=True)
class KnowledgeDomain:
    """A unit of organizational knowledge for which expertise is tracked."""

    id: str
    name: str
    type: DomainType
    description: str | None = None
    related_process_ids: list[str] | None = None
    keywords: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "relatedProcessIds": self.related_process_ids,
            "keywords": self.keywords,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeDomain":
        return cls(
            id=data["id"],
            name=data["name"],
            type=DomainType(data["type"]),
            description=data.get("description"),
            related_process_ids=data.get("relatedProcessIds"),
            keywords=data.get("keywords"),
        )


@dataclass(frozen=True)
class ContributionFactor:
    """One weighted behavioral signal for a (person, domain) pair."""

    type: ContributionType
    weight: float  # 0.0 to 1.0, saturating
    count: int  # Raw occurrences
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "weight": self.weight,
            "count": self.count,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContributionFactor":
        return cls(
            type=ContributionType(data["type"]),
            weight=data["weight"],
            count=data["count"],
            description=data["description"],
        )


@dataclass(frozen=True)
class DomainExpertise:
    """A person's standing in a single domain."""

    domain_id: str
    domain_name: str
    expertise_score: float  # 0-100
    is_unique_expert: bool = False
    is_primary_expert: bool = False
    contribution_factors: list[ContributionFactor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainId": self.domain_id,
            "domainName": self.domain_name,
            "expertiseScore": self.expertise_score,
            "isUniqueExpert": self.is_unique_expert,
            "isPrimaryExpert": self.is_primary_expert,
            "contributionFactors": [f.to_dict() for f in self.contribution_factors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomainExpertise":
        return cls(
            domain_id=data["domainId"],
            domain_name=data["domainName"],
            expertise_score=data["expertiseScore"],
            is_unique_expert=data["isUniqueExpert"],
            is_primary_expert=data["isPrimaryExpert"],
            contribution_factors=[
                ContributionFactor.from_dict(f) for f in data.get("contributionFactors", [])
            ],
        )


@dataclass(frozen=True)
class PersonKnowledge:
    """Everything one person knows, and how exposed the organization is to them."""

    person_id: str
    email: str
    display_name: str | None = None
    department: str | None = None
    domains: list[DomainExpertise] = field(default_factory=list)
    overall_knowledge_score: float = 0.0  # Mean of domain scores
    unique_knowledge_count: int = 0  # Domains where this person is the sole scorer
    criticality: Criticality = Criticality.LOW

    @property
    def label(self) -> str:
        """Human-readable name for narratives."""
        return self.display_name or self.email

    def domain(self, domain_id: str) -> DomainExpertise | None:
        for expertise in self.domains:
            if expertise.domain_id == domain_id:
                return expertise
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "personId": self.person_id,
            "email": self.email,
            "displayName": self.display_name,
            "department": self.department,
            "domains": [d.to_dict() for d in self.domains],
            "overallKnowledgeScore": self.overall_knowledge_score,
            "uniqueKnowledgeCount": self.unique_knowledge_count,
            "criticality": self.criticality.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersonKnowledge":
        return cls(
            person_id=data["personId"],
            email=data["email"],
            display_name=data.get("displayName"),
            department=data.get("department"),
            domains=[DomainExpertise.from_dict(d) for d in data.get("domains", [])],
            overall_knowledge_score=data["overallKnowledgeScore"],
            unique_knowledge_count=data["uniqueKnowledgeCount"],
            criticality=Criticality(data["criticality"]),
        )


@dataclass(frozen=True)
class KnowledgeDependency:
    """How much a domain depends on one person."""

    domain_id: str
    person_id: str
    dependency_strength: float  # Share of the domain's expertise mass, 0-1
    redundancy_level: float  # 1 - strength when others exist, else 0
    knowledge_type: KnowledgeType = KnowledgeType.MIXED

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainId": self.domain_id,
            "personId": self.person_id,
            "dependencyStrength": self.dependency_strength,
            "redundancyLevel": self.redundancy_level,
            "knowledgeType": self.knowledge_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeDependency":
        return cls(
            domain_id=data["domainId"],
            person_id=data["personId"],
            dependency_strength=data["dependencyStrength"],
            redundancy_level=data["redundancyLevel"],
            knowledge_type=KnowledgeType(data["knowledgeType"]),
        )


@dataclass(frozen=True)
class KnowledgeGraph:
    """Complete output of one graph build."""

    domains: list[KnowledgeDomain] = field(default_factory=list)
    experts: list[PersonKnowledge] = field(default_factory=list)
    dependencies: list[KnowledgeDependency] = field(default_factory=list)
    organization_coverage: float = 0.0  # 0-1
    single_points_of_failure: list[str] = field(default_factory=list)  # Person IDs

    def domain(self, domain_id: str) -> KnowledgeDomain | None:
        for domain in self.domains:
            if domain.id == domain_id:
                return domain
        return None

    def expert(self, person_id: str) -> PersonKnowledge | None:
        for expert in self.experts:
            if expert.person_id == person_id:
                return expert
        return None

    def dependencies_for(self, domain_id: str) -> list[KnowledgeDependency]:
        return [d for d in self.dependencies if d.domain_id == domain_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "domains": [d.to_dict() for d in self.domains],
            "experts": [e.to_dict() for e in self.experts],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "organizationCoverage": self.organization_coverage,
            "singlePointsOfFailure": list(self.single_points_of_failure),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnowledgeGraph":
        return cls(
            domains=[KnowledgeDomain.from_dict(d) for d in data.get("domains", [])],
            experts=[PersonKnowledge.from_dict(e) for e in data.get("experts", [])],
            dependencies=[
                KnowledgeDependency.from_dict(d) for d in data.get("dependencies", [])
            ],
            organization_coverage=data.get("organizationCoverage", 0.0),
            single_points_of_failure=list(data.get("singlePointsOfFailure", [])),
        )


@dataclass(frozen=True)
class ExpertSummary:
    """A domain expert as listed in a bus factor score."""

    person_id: str
    email: str
    expertise_score: float
    dependency_strength: float
    display_name: str | None = None
    department: str | None = None
    is_unique_expert: bool = False
    is_primary_expert: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.email

    def to_dict(self) -> dict[str, Any]:
        return {
            "personId": self.person_id,
            "email": self.email,
            "displayName": self.display_name,
            "department": self.department,
            "expertiseScore": self.expertise_score,
            "dependencyStrength": self.dependency_strength,
            "isUniqueExpert": self.is_unique_expert,
            "isPrimaryExpert": self.is_primary_expert,
        }


@dataclass(frozen=True)
class BusFactorScore:
    """Bus factor and risk for a single domain."""

    domain_id: str
    domain_name: str
    domain_type: DomainType
    bus_factor: int  # People that must be retained to keep 80% of the expertise
    risk_level: RiskLevel
    coverage: float  # 0-1, cumulative share reached by the counted experts
    redundancy: float  # 0-1, backup coverage level
    key_experts: list[ExpertSummary] = field(default_factory=list)  # Top 5
    vulnerability_assessment: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainId": self.domain_id,
            "domainName": self.domain_name,
            "domainType": self.domain_type.value,
            "busFactor": self.bus_factor,
            "riskLevel": self.risk_level.value,
            "coverage": self.coverage,
            "redundancy": self.redundancy,
            "keyExperts": [e.to_dict() for e in self.key_experts],
            "vulnerabilityAssessment": self.vulnerability_assessment,
        }


@dataclass(frozen=True)
class ImpactAssessment:
    """What the organization loses if one person leaves."""

    domains_affected: int
    processes_affected: int
    knowledge_loss_percent: float
    estimated_recovery_weeks: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainsAffected": self.domains_affected,
            "processesAffected": self.processes_affected,
            "knowledgeLossPercent": self.knowledge_loss_percent,
            "estimatedRecoveryWeeks": self.estimated_recovery_weeks,
            "description": self.description,
        }


@dataclass
class SinglePointOfFailure:
    """A person who is the sole or dominant expert in at least one domain.

    Mutable while the calculator accumulates domains for the same person.
    """

    person_id: str
    email: str
    unique_domains: list[str]
    criticality: Criticality  # HIGH or CRITICAL
    impact_if_lost: ImpactAssessment
    display_name: str | None = None
    department: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.email

    def add_domain(self, domain_name: str) -> None:
        """Accumulate another domain, escalating once two or more are held."""
        if domain_name in self.unique_domains:
            return
        self.unique_domains.append(domain_name)
        if len(self.unique_domains) >= 2:
            self.criticality = Criticality.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "personId": self.person_id,
            "email": self.email,
            "displayName": self.display_name,
            "department": self.department,
            "uniqueDomains": list(self.unique_domains),
            "criticality": self.criticality.value,
            "impactIfLost": self.impact_if_lost.to_dict(),
        }


@dataclass
class OrganizationBusFactor:
    """Organization-wide knowledge concentration report."""

    organization_id: str
    overall_bus_factor: int
    overall_risk_level: RiskLevel
    domain_scores: list[BusFactorScore]
    critical_domains_count: int
    high_risk_domains_count: int
    single_points_of_failure: list[SinglePointOfFailure]
    knowledge_distribution_score: int  # 0-100
    recommendations: list[str]
    analyzed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "overallBusFactor": self.overall_bus_factor,
            "overallRiskLevel": self.overall_risk_level.value,
            "domainScores": [s.to_dict() for s in self.domain_scores],
            "criticalDomainsCount": self.critical_domains_count,
            "highRiskDomainsCount": self.high_risk_domains_count,
            "singlePointsOfFailure": [s.to_dict() for s in self.single_points_of_failure],
            "knowledgeDistributionScore": self.knowledge_distribution_score,
            "recommendations": list(self.recommendations),
            "analyzedAt": self.analyzed_at.isoformat(),
        }
