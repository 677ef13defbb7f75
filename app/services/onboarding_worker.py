"""
app/services/onboarding_worker.py

Per-organization onboarding state machine.

    pending --claim--> processing --success--> completed
                                  --error----> failed

One invocation handles one organization and is safe to re-run: anything not
``pending`` is left untouched, which makes redelivered tasks no-ops. The
batch counter is incremented in the same commit that moves the record from
``processing`` to ``completed``, so each record is counted at most once.

The worker doubles as the dispatcher's task handler: ``handle`` runs one
attempt and ``failed`` is the terminal handler invoked after the retry
budget is spent.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.domain.onboarding import OnboardingOutcome, OrganizationSnapshot
from app.services.onboarding_action import NoOpOnboardingAction, OnboardingAction
from db.models.organization import OrganizationStatus
from db.repositories.batch_repository import BatchRepository
from db.repositories.errors import OrganizationNotFoundError
from db.repositories.organization_repository import OrganizationRepository

logger = logging.getLogger(__name__)

_MAX_REASON_LENGTH = 2000


class OrganizationOnboardingWorker:
    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] | None = None,
        action: OnboardingAction | None = None,
        max_attempts: int = 3,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._action = action or NoOpOnboardingAction()
        self._max_attempts = max(1, max_attempts)

    # ------------------------------------------------------------------
    # Task handler interface
    # ------------------------------------------------------------------

    def handle(self, payload: dict[str, Any]) -> str:
        return self.process(_organization_id_from(payload))

    def failed(self, payload: dict[str, Any], exc: BaseException, attempts: int) -> None:
        self.fail_permanently(_organization_id_from(payload), exc, attempts=attempts)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def process(self, organization_id: uuid.UUID) -> str:
        """
        Run one onboarding attempt.

        Returns OnboardingOutcome.SKIPPED for re-entry on a non-pending record
        and OnboardingOutcome.COMPLETED on success. Re-raises the action's
        exception after recording it so the dispatcher counts the attempt.
        """

        with self._session_factory() as db:
            organizations = OrganizationRepository(db)
            organization = organizations.get(organization_id)
            if organization is None:
                raise OrganizationNotFoundError(f"Organization not found: {organization_id}")

            if organization.status != OrganizationStatus.PENDING:
                logger.info(
                    "Organization onboarding skipped - not pending organization_id=%s "
                    "domain=%s current_status=%s batch_id=%s",
                    organization.id,
                    organization.domain,
                    organization.status,
                    organization.batch_id,
                )
                return OnboardingOutcome.SKIPPED

            snapshot = OrganizationSnapshot.from_model(organization)
            if not organizations.mark_processing(organization_id):
                db.rollback()
                logger.info(
                    "Organization onboarding skipped - claimed elsewhere organization_id=%s",
                    organization_id,
                )
                return OnboardingOutcome.SKIPPED
            db.commit()

            logger.info(
                "Organization onboarding started organization_id=%s domain=%s batch_id=%s",
                snapshot.id,
                snapshot.domain,
                snapshot.batch_id,
            )

            try:
                self._action.perform(snapshot)
                self._complete(db, snapshot)
            except Exception as exc:
                self._record_failure(db, snapshot, exc)
                raise

            logger.info(
                "Organization onboarding completed organization_id=%s domain=%s batch_id=%s",
                snapshot.id,
                snapshot.domain,
                snapshot.batch_id,
            )
            return OnboardingOutcome.COMPLETED

    def fail_permanently(
        self,
        organization_id: uuid.UUID,
        exc: BaseException,
        *,
        attempts: int | None = None,
    ) -> None:
        """
        Terminal handler once every attempt failed.

        Overwrites status and failed_reason whatever state the record is in;
        never touches the batch counter.
        """

        reason = _truncate(f"Job failed after {self._max_attempts} attempts: {exc}")
        with self._session_factory() as db:
            organizations = OrganizationRepository(db)
            try:
                updated = organizations.force_failed(organization_id, reason=reason)
                db.commit()
            except Exception:
                db.rollback()
                logger.exception(
                    "Failed to persist permanent onboarding failure organization_id=%s",
                    organization_id,
                )
                raise

        if not updated:
            logger.error(
                "Unable to mark organization as failed because it was not found organization_id=%s",
                organization_id,
            )
        logger.error(
            "Organization onboarding job failed permanently organization_id=%s attempts=%s error=%s",
            organization_id,
            attempts if attempts is not None else self._max_attempts,
            exc,
        )

    def _complete(self, db: Session, snapshot: OrganizationSnapshot) -> None:
        completed = OrganizationRepository(db).mark_completed(
            snapshot.id,
            processed_at=datetime.now(timezone.utc),
        )
        if completed and snapshot.batch_id is not None:
            if not BatchRepository(db).increment_processed(snapshot.batch_id):
                logger.warning(
                    "Batch progress not updated, batch missing batch_id=%s organization_id=%s",
                    snapshot.batch_id,
                    snapshot.id,
                )
        db.commit()

    def _record_failure(self, db: Session, snapshot: OrganizationSnapshot, exc: Exception) -> None:
        reason = _truncate(str(exc) or type(exc).__name__)
        logger.error(
            "Organization onboarding failed organization_id=%s domain=%s batch_id=%s error=%s",
            snapshot.id,
            snapshot.domain,
            snapshot.batch_id,
            reason,
        )
        try:
            db.rollback()
            OrganizationRepository(db).mark_failed(snapshot.id, reason=reason)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed onboarding state organization_id=%s", snapshot.id)


def _organization_id_from(payload: dict[str, Any]) -> uuid.UUID:
    raw = payload.get("organization_id")
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError as exc:
        raise ValueError(f"Invalid onboarding payload organization_id={raw!r}") from exc


def _truncate(message: str) -> str:
    return message[:_MAX_REASON_LENGTH]
