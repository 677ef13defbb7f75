"""
Repository-layer exceptions for batch and organization persistence.
"""

from __future__ import annotations


class OnboardingRepositoryError(Exception):
    """Base exception for onboarding persistence failures."""


class BatchNotFoundError(OnboardingRepositoryError, LookupError):
    """Raised when a referenced batch does not exist."""


class OrganizationNotFoundError(OnboardingRepositoryError, LookupError):
    """Raised when a referenced organization does not exist."""


class UnsupportedDialectError(OnboardingRepositoryError):
    """Raised when insert-or-ignore is requested on a backend without ON CONFLICT support."""
