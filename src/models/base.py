"""SQLAlchemy declarative base."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""

    # JSONB on Postgres, plain JSON elsewhere (SQLite in local runs)
    JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")
