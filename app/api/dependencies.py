"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and service wiring.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Request
from pydantic import TypeAdapter, ValidationError

from app.api.errors import OnboardingRequestError
from app.config import OnboardingSettings, get_onboarding_settings
from app.domain.onboarding import OrganizationCandidate
from app.scheduler.dispatcher import WorkDispatcher
from app.schemas.bulk_onboard import OrganizationOnboardRequest
from app.services.bulk_onboard_service import BulkOnboardService

NO_ORGANIZATIONS_PROVIDED = "No organizations provided"

_REQUIRED_MESSAGES = {
    "name": "Organization name is required",
    "domain": "Organization domain is required",
}
_INVALID_EMAIL_MESSAGE = "Contact email must be a valid email address"
_REQUIRED_ERROR_TYPES = {"missing", "string_too_short"}

_BODY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def _error_message(key: str, field: str, error: dict[str, Any]) -> str:
    error_type = error.get("type", "")
    if field in _REQUIRED_MESSAGES:
        if error_type in _REQUIRED_ERROR_TYPES or error.get("input") is None:
            return _REQUIRED_MESSAGES[field]
        if error_type == "string_type":
            return f"The {key} field must be a string."
    if error_type == "string_too_long":
        max_length = (error.get("ctx") or {}).get("max_length")
        return f"The {key} field must not be greater than {max_length} characters."
    if field == "contact_email":
        return _INVALID_EMAIL_MESSAGE
    return str(error.get("msg", "Invalid value"))


def validate_organizations(items: list[Any]) -> tuple[list[OrganizationCandidate], dict[str, list[str]]]:
    """
    Validate every submitted item.

    Returns the candidates and a ``{"<index>.<field>": [messages]}`` map;
    candidates are only meaningful when the map is empty.
    """

    candidates: list[OrganizationCandidate] = []
    errors: dict[str, list[str]] = {}

    for index, item in enumerate(items):
        raw = item if isinstance(item, dict) else {}
        try:
            parsed = OrganizationOnboardRequest.model_validate(raw)
        except ValidationError as exc:
            for error in exc.errors():
                field = ".".join(str(part) for part in error.get("loc", ())) or "organization"
                key = f"{index}.{field}"
                message = _error_message(key, field, error)
                messages = errors.setdefault(key, [])
                if message not in messages:
                    messages.append(message)
            continue

        candidates.append(
            OrganizationCandidate(
                name=parsed.name,
                domain=parsed.domain,
                contact_email=str(parsed.contact_email) if parsed.contact_email else None,
            )
        )

    return candidates, errors


async def get_bulk_onboard_payload(
    request: Request,
    settings: OnboardingSettings = Depends(get_onboarding_settings),
) -> list[OrganizationCandidate]:
    """
    Parse and validate the bulk onboarding body (a JSON array of organizations).

    Field validation runs first; the batch size limit is applied to input
    that is otherwise valid.
    """

    raw_body = await request.body()
    try:
        payload = _BODY_ADAPTER.validate_json(raw_body) if raw_body.strip() else []
    except ValidationError as exc:
        raise OnboardingRequestError.validation_failed(
            {"organizations": ["The request body must be valid JSON."]}
        ) from exc

    if not isinstance(payload, list):
        raise OnboardingRequestError.validation_failed(
            {"organizations": ["The organizations field must be an array."]}
        )
    if not payload:
        raise OnboardingRequestError.validation_failed({"organizations": [NO_ORGANIZATIONS_PROVIDED]})

    candidates, errors = validate_organizations(payload)
    if errors:
        raise OnboardingRequestError.validation_failed(errors)

    if len(candidates) > settings.max_batch_size:
        raise OnboardingRequestError.capacity_exceeded(settings.max_batch_size)

    return candidates


def get_work_dispatcher(request: Request) -> WorkDispatcher:
    dispatcher = getattr(request.app.state, "work_dispatcher", None)
    if dispatcher is None:
        raise RuntimeError("Work dispatcher is not initialised; the application lifespan has not run.")
    return dispatcher


def get_bulk_onboard_service(
    dispatcher: WorkDispatcher = Depends(get_work_dispatcher),
    settings: OnboardingSettings = Depends(get_onboarding_settings),
) -> BulkOnboardService:
    return BulkOnboardService(
        dispatcher=dispatcher,
        queue_name=settings.queue_name,
        insert_chunk_size=settings.insert_chunk_size,
    )
