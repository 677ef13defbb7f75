"""
app/domain/onboarding.py

Domain models for bulk organization onboarding.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from db.models.organization import Organization

ONBOARDING_QUEUE = "organization-onboarding"
ONBOARDING_TASK_PREFIX = "onboarding:"
BATCH_ACCEPTED_STATUS = "processing"


def onboarding_task_key(organization_id: uuid.UUID) -> str:
    """Dispatcher dedup key; one in-flight task per organization."""
    return f"{ONBOARDING_TASK_PREFIX}{organization_id}"


class OnboardingOutcome:
    SKIPPED = "skipped"
    COMPLETED = "completed"


@dataclass(frozen=True)
class OrganizationCandidate:
    """
    One validated organization submitted for onboarding.
    """

    name: str
    domain: str
    contact_email: str | None = None


@dataclass(frozen=True)
class BulkOnboardResult:
    """
    Outcome of registering one bulk onboarding request.

    total_organizations counts the records actually persisted, which is
    lower than the submitted count when duplicate domains were skipped.
    """

    batch_id: uuid.UUID
    total_organizations: int
    status: str = BATCH_ACCEPTED_STATUS


@dataclass(frozen=True)
class OrganizationSnapshot:
    """
    Immutable view of an organization handed to the onboarding action.
    """

    id: uuid.UUID
    name: str
    domain: str
    contact_email: str | None
    batch_id: uuid.UUID | None

    @classmethod
    def from_model(cls, organization: "Organization") -> "OrganizationSnapshot":
        return cls(
            id=organization.id,
            name=organization.name,
            domain=organization.domain,
            contact_email=organization.contact_email,
            batch_id=organization.batch_id,
        )


@dataclass(frozen=True)
class BatchProgress:
    batch_id: uuid.UUID
    status: str
    total_organizations: int
    processed_organizations: int
    created_at: datetime
    updated_at: datetime
    status_counts: dict[str, int] = field(default_factory=dict)
