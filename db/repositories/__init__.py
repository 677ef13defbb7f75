"""
Repository layer exports.
"""

from db.repositories.batch_repository import BatchRepository
from db.repositories.errors import (
    BatchNotFoundError,
    OnboardingRepositoryError,
    OrganizationNotFoundError,
    UnsupportedDialectError,
)
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.types import OrganizationBulkCreate

__all__ = [
    "BatchRepository",
    "OrganizationRepository",
    "OrganizationBulkCreate",
    "OnboardingRepositoryError",
    "BatchNotFoundError",
    "OrganizationNotFoundError",
    "UnsupportedDialectError",
]
