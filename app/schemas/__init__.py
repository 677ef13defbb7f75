"""
app/schemas package marker.
"""

from app.schemas.bulk_onboard import (
    BatchOrganizationsResponse,
    BatchStatusResponse,
    BulkOnboardAcceptedResponse,
    ErrorResponse,
    OrganizationOnboardRequest,
    OrganizationStatusResponse,
)

__all__ = [
    "BatchOrganizationsResponse",
    "BatchStatusResponse",
    "BulkOnboardAcceptedResponse",
    "ErrorResponse",
    "OrganizationOnboardRequest",
    "OrganizationStatusResponse",
]
