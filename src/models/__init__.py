"""Database models."""

from src.models.base import Base
from src.models.event import OrganizationEvent

__all__ = [
    "Base",
    "OrganizationEvent",
]
