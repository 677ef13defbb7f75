"""
app/schemas/bulk_onboard.py

Request and response schemas for bulk onboarding endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic_core import PydanticCustomError

_MAX_FIELD_LENGTH = 255


class OrganizationOnboardRequest(BaseModel):
    """
    One organization in a bulk onboarding request body.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=_MAX_FIELD_LENGTH)
    domain: str = Field(..., min_length=1, max_length=_MAX_FIELD_LENGTH)
    contact_email: EmailStr | None = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        value = value.strip()
        if not value:
            return None
        if len(value) > _MAX_FIELD_LENGTH:
            raise PydanticCustomError(
                "string_too_long",
                "String should have at most {max_length} characters",
                {"max_length": _MAX_FIELD_LENGTH},
            )
        return value


class BulkOnboardAcceptedResponse(BaseModel):
    message: str = "Bulk onboarding initiated successfully"
    batch_id: UUID
    total_organizations: int = Field(..., ge=0)
    status: str


class ErrorResponse(BaseModel):
    error: str
    details: Any | None = None


class BatchStatusResponse(BaseModel):
    batch_id: UUID
    status: str
    total_organizations: int = Field(..., ge=0)
    processed_organizations: int = Field(..., ge=0)
    status_counts: dict[str, int] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class OrganizationStatusResponse(BaseModel):
    id: UUID
    name: str
    domain: str
    contact_email: str | None = None
    status: str
    batch_id: UUID | None = None
    processed_at: datetime | None = None
    failed_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BatchOrganizationsResponse(BaseModel):
    batch_id: UUID
    organizations: list[OrganizationStatusResponse] = Field(default_factory=list)
