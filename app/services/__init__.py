"""
app/services package marker.
"""

from app.services.bulk_onboard_service import BulkOnboardError, BulkOnboardService
from app.services.onboarding_action import (
    NoOpOnboardingAction,
    OnboardingAction,
    OnboardingActionConfigError,
    load_onboarding_action,
)
from app.services.onboarding_worker import OrganizationOnboardingWorker

__all__ = [
    "BulkOnboardError",
    "BulkOnboardService",
    "NoOpOnboardingAction",
    "OnboardingAction",
    "OnboardingActionConfigError",
    "OrganizationOnboardingWorker",
    "load_onboarding_action",
]
