"""
Typed DTOs used by the onboarding repositories.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from db.models.organization import OrganizationStatus


@dataclass(frozen=True)
class OrganizationBulkCreate:
    """
    Normalized organization row used for insert-or-ignore bulk writes.
    """

    name: str
    domain: str
    batch_id: uuid.UUID | None
    contact_email: str | None = None
    status: str = OrganizationStatus.PENDING
    organization_id: uuid.UUID = field(default_factory=uuid.uuid4)

    def to_payload(self) -> dict[str, object]:
        return {
            "id": self.organization_id,
            "name": self.name,
            "domain": self.domain,
            "contact_email": self.contact_email,
            "status": self.status,
            "batch_id": self.batch_id,
        }
