"""Shared database models."""

from app.shared.models.base import BaseModel, TimestampMixin, VersionMixin, new_document_id

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "VersionMixin",
    "new_document_id",
]
