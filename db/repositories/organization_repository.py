"""
Repository for organization rows: deduplicating bulk writes, status
transitions and batch-scoped lookups.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from db.models.organization import Organization, OrganizationStatus
from db.repositories.errors import UnsupportedDialectError
from db.repositories.types import OrganizationBulkCreate

_DEFAULT_CHUNK_SIZE = 500
_NO_SYNC = {"synchronize_session": False}


class OrganizationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------

    def bulk_insert_ignore_duplicates(
        self,
        rows: Sequence[OrganizationBulkCreate],
        *,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
    ) -> list[uuid.UUID]:
        """
        Insert rows in chunks, skipping any whose domain already exists.

        Collisions with stored rows and with earlier rows of the same call are
        dropped silently. Nothing is committed here; the caller owns the
        transaction. Returns the ids of the rows actually persisted.
        """

        if not rows:
            return []

        size = max(1, chunk_size)
        payloads = self._deduplicate_payloads([row.to_payload() for row in rows])
        inserted_ids: list[uuid.UUID] = []

        for start in range(0, len(payloads), size):
            chunk = payloads[start : start + size]
            stmt = (
                self._insert_statement()
                .values(chunk)
                .on_conflict_do_nothing(index_elements=["domain"])
                .returning(Organization.id)
            )
            inserted_ids.extend(self._session.scalars(stmt).all())

        return inserted_ids

    def _deduplicate_payloads(self, payloads: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        seen: set[str] = set()
        deduped: list[dict[str, Any]] = []
        for payload in payloads:
            domain = payload["domain"]
            if domain in seen:
                continue
            seen.add(domain)
            deduped.append(payload)
        return deduped

    def _insert_statement(self) -> Any:
        dialect_name = self._session.get_bind().dialect.name
        if dialect_name == "postgresql":
            return postgresql.insert(Organization)
        if dialect_name == "sqlite":
            return sqlite.insert(Organization)
        raise UnsupportedDialectError(
            f"Insert-or-ignore is not supported for dialect {dialect_name!r}"
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, organization_id: uuid.UUID) -> Organization | None:
        # populate_existing forces a fresh read of status on re-entry.
        return self._session.get(Organization, organization_id, populate_existing=True)

    def list_by_batch(
        self,
        batch_id: uuid.UUID,
        *,
        status: str | None = None,
        limit: int = 100,
    ) -> list[Organization]:
        stmt: Select[tuple[Organization]] = select(Organization).where(
            Organization.batch_id == batch_id
        )
        if status:
            stmt = stmt.where(Organization.status == status)
        stmt = stmt.order_by(Organization.created_at, Organization.domain).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def count_by_status(self, batch_id: uuid.UUID) -> dict[str, int]:
        stmt = (
            select(Organization.status, func.count(Organization.id))
            .where(Organization.batch_id == batch_id)
            .group_by(Organization.status)
        )
        counts = {status: 0 for status in OrganizationStatus.ALL}
        for status, count in self._session.execute(stmt).all():
            counts[status] = int(count)
        return counts

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def mark_processing(self, organization_id: uuid.UUID) -> bool:
        """Claim a pending organization. False when it is no longer pending."""
        return self._transition(
            organization_id,
            from_status=OrganizationStatus.PENDING,
            values={"status": OrganizationStatus.PROCESSING},
        )

    def mark_completed(self, organization_id: uuid.UUID, *, processed_at: datetime) -> bool:
        return self._transition(
            organization_id,
            from_status=OrganizationStatus.PROCESSING,
            values={
                "status": OrganizationStatus.COMPLETED,
                "processed_at": processed_at,
                "failed_reason": None,
            },
        )

    def mark_failed(self, organization_id: uuid.UUID, *, reason: str) -> bool:
        return self._transition(
            organization_id,
            from_status=OrganizationStatus.PROCESSING,
            values={"status": OrganizationStatus.FAILED, "failed_reason": reason},
        )

    def force_failed(self, organization_id: uuid.UUID, *, reason: str) -> bool:
        """Set failed regardless of the current status. False if the row is missing."""
        stmt = (
            update(Organization)
            .where(Organization.id == organization_id)
            .values(status=OrganizationStatus.FAILED, failed_reason=reason)
        )
        result = self._session.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount == 1

    def _transition(
        self,
        organization_id: uuid.UUID,
        *,
        from_status: str,
        values: dict[str, Any],
    ) -> bool:
        stmt = (
            update(Organization)
            .where(
                Organization.id == organization_id,
                Organization.status == from_status,
            )
            .values(**values)
        )
        result = self._session.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount == 1
