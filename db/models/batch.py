"""
db/models/batch.py

Batch aggregate: how many organizations one bulk request registered and how
many of them have finished onboarding successfully.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.organization import Organization


class BatchStatus:
    PENDING = "pending"


class Batch(Base, TimestampMixin):
    """
    One bulk onboarding request.

    processed_organizations is only ever moved by the atomic increment in
    BatchRepository; it never exceeds total_organizations.
    """

    __tablename__ = "batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BatchStatus.PENDING,
        server_default=BatchStatus.PENDING,
    )
    total_organizations: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    processed_organizations: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    organizations: Mapped[list["Organization"]] = relationship(
        "Organization",
        back_populates="batch",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("total_organizations >= 0", name="total_non_negative"),
        CheckConstraint(
            "processed_organizations >= 0 AND processed_organizations <= total_organizations",
            name="processed_within_total",
        ),
        Index("ix_batches_status", "status"),
        Index("ix_batches_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Batch id={self.id} processed={self.processed_organizations}"
            f"/{self.total_organizations}>"
        )
