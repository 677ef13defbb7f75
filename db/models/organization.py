"""
db/models/organization.py

Organization model: one onboarding candidate, unique by domain.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.batch import Batch


class OrganizationStatus:
    """Allowed transitions: pending -> processing -> completed | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    ALL = (PENDING, PROCESSING, COMPLETED, FAILED)


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Natural key, unique across all organizations (case-sensitive)",
    )
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=OrganizationStatus.PENDING,
        server_default=OrganizationStatus.PENDING,
    )
    batch_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("batches.id", ondelete="SET NULL"),
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    failed_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped["Batch | None"] = relationship("Batch", back_populates="organizations")

    __table_args__ = (
        UniqueConstraint("domain"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="status_valid",
        ),
        Index("ix_organizations_batch_id", "batch_id"),
        Index("ix_organizations_status", "status"),
        Index("ix_organizations_batch_id_status", "batch_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} domain={self.domain!r} status={self.status!r}>"
