"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.batch import Batch, BatchStatus
from db.models.organization import Organization, OrganizationStatus

__all__ = [
    "Batch",
    "BatchStatus",
    "Organization",
    "OrganizationStatus",
]
