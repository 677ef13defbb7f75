"""
Repository for batch registration and progress accounting.
"""

from __future__ import annotations

import uuid

from sqlalchemy import update
from sqlalchemy.orm import Session

from db.models.batch import Batch, BatchStatus
from db.repositories.errors import BatchNotFoundError

_NO_SYNC = {"synchronize_session": False}


class BatchRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, *, total_count: int) -> uuid.UUID:
        batch = Batch(
            status=BatchStatus.PENDING,
            total_organizations=max(0, total_count),
            processed_organizations=0,
        )
        self._session.add(batch)
        self._session.flush()
        return batch.id

    def get_batch(self, batch_id: uuid.UUID) -> Batch | None:
        return self._session.get(Batch, batch_id, populate_existing=True)

    def set_total(self, batch_id: uuid.UUID, count: int) -> None:
        stmt = (
            update(Batch)
            .where(Batch.id == batch_id)
            .values(total_organizations=max(0, count))
        )
        result = self._session.execute(stmt, execution_options=_NO_SYNC)
        if result.rowcount == 0:
            raise BatchNotFoundError(f"Batch not found: {batch_id}")

    def increment_processed(self, batch_id: uuid.UUID) -> bool:
        """
        Add one to processed_organizations in a single UPDATE statement.

        The read-modify-write happens inside the database, so concurrent
        workers never lose an increment. Returns False if the batch is gone.
        """

        stmt = (
            update(Batch)
            .where(Batch.id == batch_id)
            .values(processed_organizations=Batch.processed_organizations + 1)
        )
        result = self._session.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount == 1
