"""Validated option objects for the engine's entry points."""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.busfactor.errors import InvalidConfigurationError
from src.busfactor.models import KnowledgeDomain
from src.config import settings

OptionsT = TypeVar("OptionsT", bound=BaseModel)


class GraphBuildOptions(BaseModel):
    """Options for building a knowledge graph."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    lookback_days: int = Field(default_factory=lambda: settings.busfactor_lookback_days, ge=1, le=3650)
    min_activity_threshold: float = Field(
        default_factory=lambda: settings.busfactor_min_activity_threshold, ge=0, le=100
    )
    include_external_domains: bool = False
    custom_domains: list[KnowledgeDomain] = Field(default_factory=list)


class BusFactorOptions(BaseModel):
    """Options for bus factor calculations."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    lookback_days: int = Field(default_factory=lambda: settings.busfactor_lookback_days, ge=1, le=3650)
    expertise_threshold: float = Field(
        default_factory=lambda: settings.busfactor_expertise_threshold, ge=0, le=100
    )
    # Validated for callers; every bus-factor-1 primary expert is still a SPOF
    primary_threshold: float = Field(
        default_factory=lambda: settings.busfactor_primary_threshold, ge=0, le=1
    )


class RiskQuantificationOptions(BusFactorOptions):
    """Cost assumptions for monetary risk quantification."""

    avg_salary: float = Field(default=75000, ge=0)  # Annual
    hiring_cost: float = Field(default=15000, ge=0)  # Recruiting and onboarding
    training_weeks: float = Field(default=12, ge=0)
    revenue_per_employee: float = Field(default=150000, ge=0)
    project_value: float = Field(default=50000, ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)


def parse_options(model: type[OptionsT], options: dict[str, Any]) -> OptionsT:
    """Validate caller options, raising InvalidConfigurationError on bad input."""
    try:
        return model(**options)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidConfigurationError(f"Invalid options: {details}", fields=fields) from e


def require_organization_id(organization_id: str) -> str:
    """Reject empty organization IDs before any query runs."""
    if not organization_id or not organization_id.strip():
        raise InvalidConfigurationError(
            "organization_id must be a non-empty string", fields=["organization_id"]
        )
    return organization_id
