"""
Bulk organization onboarding endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_bulk_onboard_payload, get_bulk_onboard_service
from app.api.errors import OnboardingRequestError
from app.config import AppSettings, get_app_settings
from app.domain.onboarding import OrganizationCandidate
from app.schemas.bulk_onboard import (
    BatchOrganizationsResponse,
    BatchStatusResponse,
    BulkOnboardAcceptedResponse,
    ErrorResponse,
    OrganizationStatusResponse,
)
from app.services.bulk_onboard_service import BulkOnboardError, BulkOnboardService
from db.models.organization import OrganizationStatus
from db.session import get_db

router = APIRouter(tags=["bulk-onboarding"])

_STATUS_PATTERN = "^(" + "|".join(OrganizationStatus.ALL) + ")$"

_BULK_ONBOARD_ERRORS = {
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}
_BATCH_ERRORS = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}


@router.post(
    "/bulk-onboard",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=BulkOnboardAcceptedResponse,
    responses=_BULK_ONBOARD_ERRORS,
)
def bulk_onboard(
    organizations: list[OrganizationCandidate] = Depends(get_bulk_onboard_payload),
    db: Session = Depends(get_db),
    service: BulkOnboardService = Depends(get_bulk_onboard_service),
    settings: AppSettings = Depends(get_app_settings),
) -> BulkOnboardAcceptedResponse:
    try:
        result = service.process_bulk_onboarding(db=db, organizations=organizations)
    except BulkOnboardError as exc:
        raise OnboardingRequestError.processing_failed(exc, debug=settings.debug) from exc

    return BulkOnboardAcceptedResponse(
        batch_id=result.batch_id,
        total_organizations=result.total_organizations,
        status=result.status,
    )


@router.get("/batches/{batch_id}", response_model=BatchStatusResponse, responses=_BATCH_ERRORS)
def get_batch_status(
    batch_id: UUID,
    db: Session = Depends(get_db),
    service: BulkOnboardService = Depends(get_bulk_onboard_service),
) -> BatchStatusResponse:
    progress = service.get_batch_progress(db=db, batch_id=batch_id)
    if progress is None:
        raise OnboardingRequestError.batch_not_found(batch_id)

    return BatchStatusResponse(
        batch_id=progress.batch_id,
        status=progress.status,
        total_organizations=progress.total_organizations,
        processed_organizations=progress.processed_organizations,
        status_counts=progress.status_counts,
        created_at=progress.created_at,
        updated_at=progress.updated_at,
    )


@router.get(
    "/batches/{batch_id}/organizations",
    response_model=BatchOrganizationsResponse,
    responses=_BATCH_ERRORS,
)
def list_batch_organizations(
    batch_id: UUID,
    status_filter: str | None = Query(
        default=None,
        alias="status",
        pattern=_STATUS_PATTERN,
        description="Optional organization status filter",
    ),
    limit: int = Query(default=100, ge=1, le=500, description="Max organizations returned"),
    db: Session = Depends(get_db),
    service: BulkOnboardService = Depends(get_bulk_onboard_service),
) -> BatchOrganizationsResponse:
    if service.get_batch_progress(db=db, batch_id=batch_id) is None:
        raise OnboardingRequestError.batch_not_found(batch_id)

    organizations = service.list_batch_organizations(
        db=db,
        batch_id=batch_id,
        status=status_filter,
        limit=limit,
    )
    return BatchOrganizationsResponse(
        batch_id=batch_id,
        organizations=[OrganizationStatusResponse.model_validate(item) for item in organizations],
    )
