"""
app/domain package marker.
"""

from app.domain.onboarding import (
    BATCH_ACCEPTED_STATUS,
    ONBOARDING_QUEUE,
    BatchProgress,
    BulkOnboardResult,
    OnboardingOutcome,
    OrganizationCandidate,
    OrganizationSnapshot,
    onboarding_task_key,
)

__all__ = [
    "BATCH_ACCEPTED_STATUS",
    "ONBOARDING_QUEUE",
    "BatchProgress",
    "BulkOnboardResult",
    "OnboardingOutcome",
    "OrganizationCandidate",
    "OrganizationSnapshot",
    "onboarding_task_key",
]
