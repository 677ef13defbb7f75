"""
app/api/errors.py

Error envelope for the onboarding API.

Bulk onboarding responds with ``{"error": ..., "details": ...}`` bodies
instead of FastAPI's default ``{"detail": ...}``; routers and dependencies
raise ``OnboardingRequestError`` and the handler registered here renders it.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

VALIDATION_FAILED = "Validation failed"
CAPACITY_EXCEEDED = "Maximum {limit} organizations allowed per request"
PROCESSING_FAILED = "Failed to process bulk onboarding request"
INTERNAL_ERROR_DETAIL = "Internal server error"
BATCH_NOT_FOUND = "Batch not found"


class OnboardingRequestError(Exception):
    """
    Request-level failure rendered as an ``{"error", "details"}`` JSON body.
    """

    def __init__(self, status_code: int, error: str, details: Any | None = None) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        return content

    @classmethod
    def validation_failed(cls, details: dict[str, list[str]]) -> "OnboardingRequestError":
        return cls(status.HTTP_422_UNPROCESSABLE_ENTITY, VALIDATION_FAILED, details)

    @classmethod
    def capacity_exceeded(cls, limit: int) -> "OnboardingRequestError":
        return cls(status.HTTP_422_UNPROCESSABLE_ENTITY, CAPACITY_EXCEEDED.format(limit=limit))

    @classmethod
    def batch_not_found(cls, batch_id: Any) -> "OnboardingRequestError":
        return cls(status.HTTP_404_NOT_FOUND, BATCH_NOT_FOUND, {"batch_id": str(batch_id)})

    @classmethod
    def processing_failed(cls, exc: BaseException, *, debug: bool) -> "OnboardingRequestError":
        detail = str(exc.__cause__ or exc) if debug else INTERNAL_ERROR_DETAIL
        return cls(status.HTTP_500_INTERNAL_SERVER_ERROR, PROCESSING_FAILED, detail)


async def _onboarding_request_error_handler(request: Request, exc: OnboardingRequestError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(OnboardingRequestError, _onboarding_request_error_handler)
