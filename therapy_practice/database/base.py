"""
SQLAlchemy Base Configuration

This module provides the SQLAlchemy declarative base shared by all ORM models
of the practice backend.
"""

import uuid
import datetime
from typing import Any, Dict, Optional

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# Configure naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


def generate_uuid() -> str:
    """Primary key default for all tables."""
    return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, matching the columns' ``DateTime`` type."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class ModelBase(Base):
    """Base class for all SQLAlchemy models."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def update(self, data: Dict[str, Any]) -> None:
        """Update mapped columns from a dictionary, ignoring unknown keys."""
        columns = self.__table__.columns
        for key, value in data.items():
            if key in columns:
                setattr(self, key, value)


def to_naive_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
