"""
Knowledge concentration and bus factor engine.

Estimates who holds which organizational knowledge from activity signals
and how exposed the organization is if those people leave:
- Knowledge graph: domains, experts and dependency strengths
- Bus factor per domain and organization-wide
- Single points of failure and recommendations
- Monetary risk exposure
"""

from src.busfactor.builder import KnowledgeDependencyBuilder
from src.busfactor.cache import GraphCache, InMemoryGraphCache, RedisGraphCache
from src.busfactor.calculator import BusFactorCalculator
from src.busfactor.errors import (
    BusFactorError,
    InvalidConfigurationError,
    UpstreamUnavailableError,
)
from src.busfactor.exposure import RiskExposureQuantifier
from src.busfactor.models import (
    BusFactorScore,
    KnowledgeDomain,
    KnowledgeGraph,
    OrganizationBusFactor,
    PersonKnowledge,
    SinglePointOfFailure,
)

__all__ = [
    "KnowledgeDependencyBuilder",
    "BusFactorCalculator",
    "RiskExposureQuantifier",
    "GraphCache",
    "InMemoryGraphCache",
    "RedisGraphCache",
    "BusFactorError",
    "InvalidConfigurationError",
    "UpstreamUnavailableError",
    "BusFactorScore",
    "KnowledgeDomain",
    "KnowledgeGraph",
    "OrganizationBusFactor",
    "PersonKnowledge",
    "SinglePointOfFailure",
]
