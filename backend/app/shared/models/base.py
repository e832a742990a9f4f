"""
Base model classes and mixins for all database models.
"""

import uuid
from sqlalchemy import Column, Integer, DateTime, String
from sqlalchemy.orm import declared_attr

from app.core.database import Base
from app.core.timezone import utc_timestamp


def new_document_id() -> str:
    """Generate a document-style string key."""
    return uuid.uuid4().hex


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    created_at = Column(DateTime, default=utc_timestamp, nullable=False)
    updated_at = Column(DateTime, default=utc_timestamp, onupdate=utc_timestamp, nullable=False)


class VersionMixin:
    """
    Optimistic concurrency counter.

    Bumped on every write; bulk updates must bump it explicitly.
    """

    version = Column(Integer, default=1, nullable=False)


class BaseModel(Base, TimestampMixin):
    """Base model with common fields for all entities."""

    __abstract__ = True

    id = Column(String(32), primary_key=True, default=new_document_id)

    @declared_attr
    def __tablename__(cls) -> str:
        """Auto-generate table name from class name."""
        # Convert CamelCase to snake_case
        name = cls.__name__
        return ''.join(['_' + c.lower() if c.isupper() else c for c in name]).lstrip('_')
