"""
app/services/bulk_onboard_service.py

Transactional entry point for bulk organization onboarding.

One call registers a batch, inserts its organizations (silently skipping
duplicate domains) and schedules one onboarding task per inserted record.
All of it happens inside a single transaction on the session the caller
passes in; tasks are staged during the transaction and handed to the
dispatcher only after commit, so a rollback leaves no batch, no
organizations and no tasks behind.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.domain.onboarding import (
    ONBOARDING_QUEUE,
    BatchProgress,
    BulkOnboardResult,
    OrganizationCandidate,
    onboarding_task_key,
)
from app.scheduler.dispatcher import StagedDispatch, WorkDispatcher
from db.models.organization import Organization
from db.repositories.batch_repository import BatchRepository
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.types import OrganizationBulkCreate

logger = logging.getLogger(__name__)


class BulkOnboardError(RuntimeError):
    """
    Raised when a bulk request could not be registered. Nothing was persisted
    and nothing was dispatched; the original error is chained as __cause__.
    """


class BulkOnboardService:
    """
    Coordinates batch registration, deduplicating inserts and task dispatch.
    """

    def __init__(
        self,
        *,
        dispatcher: WorkDispatcher,
        queue_name: str = ONBOARDING_QUEUE,
        insert_chunk_size: int = 500,
    ) -> None:
        self._dispatcher = dispatcher
        self._queue_name = queue_name
        self._insert_chunk_size = max(1, insert_chunk_size)

    def process_bulk_onboarding(
        self,
        *,
        db: Session,
        organizations: Sequence[OrganizationCandidate],
    ) -> BulkOnboardResult:
        """
        Register a batch and fan out one onboarding task per new organization.

        ``db`` must not have a transaction in progress; this method opens and
        commits its own. Raises BulkOnboardError on any failure.
        """

        staged = StagedDispatch(self._dispatcher)
        try:
            with db.begin():
                batches = BatchRepository(db)
                batch_id = batches.create(total_count=len(organizations))

                inserted_ids = OrganizationRepository(db).bulk_insert_ignore_duplicates(
                    [
                        OrganizationBulkCreate(
                            name=candidate.name,
                            domain=candidate.domain,
                            contact_email=candidate.contact_email,
                            batch_id=batch_id,
                        )
                        for candidate in organizations
                    ],
                    chunk_size=self._insert_chunk_size,
                )
                batches.set_total(batch_id, len(inserted_ids))

                for organization_id in inserted_ids:
                    staged.enqueue(
                        onboarding_task_key(organization_id),
                        {"organization_id": str(organization_id)},
                        self._queue_name,
                    )
        except Exception as exc:
            staged.discard()
            logger.exception(
                "Bulk onboarding failed submitted=%s status=batch_creation_failed error=%s",
                len(organizations),
                exc,
            )
            raise BulkOnboardError("Failed to process bulk onboarding request.") from exc

        dispatched = staged.release()
        logger.info(
            "Bulk onboarding batch created batch_id=%s submitted=%s inserted=%s "
            "jobs_dispatched=%s queue=%s",
            batch_id,
            len(organizations),
            len(inserted_ids),
            dispatched,
            self._queue_name,
        )

        return BulkOnboardResult(batch_id=batch_id, total_organizations=len(inserted_ids))

    def get_batch_progress(self, *, db: Session, batch_id: uuid.UUID) -> BatchProgress | None:
        batch = BatchRepository(db).get_batch(batch_id)
        if batch is None:
            return None
        return BatchProgress(
            batch_id=batch.id,
            status=batch.status,
            total_organizations=batch.total_organizations,
            processed_organizations=batch.processed_organizations,
            created_at=batch.created_at,
            updated_at=batch.updated_at,
            status_counts=OrganizationRepository(db).count_by_status(batch_id),
        )

    def list_batch_organizations(
        self,
        *,
        db: Session,
        batch_id: uuid.UUID,
        status: str | None = None,
        limit: int = 100,
    ) -> list[Organization]:
        return OrganizationRepository(db).list_by_batch(batch_id, status=status, limit=limit)
