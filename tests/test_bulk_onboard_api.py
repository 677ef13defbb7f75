"""
tests/test_bulk_onboard_api.py

HTTP contract of the onboarding router, exercised with FastAPI's TestClient.
The app is assembled here rather than imported from app.main so no
environment validation or scheduler lifecycle runs.
"""

from __future__ import annotations

import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from app.api.dependencies import get_work_dispatcher
from app.api.errors import register_exception_handlers
from app.api.routers import bulk_onboard_router
from app.config import AppSettings, OnboardingSettings, get_app_settings, get_onboarding_settings
from app.services.bulk_onboard_service import BulkOnboardError, BulkOnboardService
from db.models.batch import Batch
from db.models.organization import Organization
from db.session import get_db


def _organizations(count: int) -> list[dict[str, str]]:
    return [
        {"name": f"Org {index}", "domain": f"org-{index}.acme.io", "contact_email": f"ops{index}@acme.io"}
        for index in range(count)
    ]


@pytest.fixture()
def settings() -> dict[str, object]:
    return {"app": AppSettings(debug=False), "onboarding": OnboardingSettings()}


@pytest.fixture()
def client(session_factory, dispatcher, settings) -> TestClient:
    application = FastAPI()
    register_exception_handlers(application)
    application.include_router(bulk_onboard_router)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_work_dispatcher] = lambda: dispatcher
    application.dependency_overrides[get_app_settings] = lambda: settings["app"]
    application.dependency_overrides[get_onboarding_settings] = lambda: settings["onboarding"]
    return TestClient(application)


def _row_counts(session_factory) -> tuple[int, int]:
    with session_factory() as session:
        return (
            session.scalar(select(func.count(Batch.id))),
            session.scalar(select(func.count(Organization.id))),
        )


# ---------------------------------------------------------------------------
# POST /bulk-onboard
# ---------------------------------------------------------------------------


class TestBulkOnboard:
    def test_accepts_valid_request(self, client, dispatcher, session_factory) -> None:
        response = client.post("/bulk-onboard", json=_organizations(3))

        assert response.status_code == 202
        body = response.json()
        assert body["message"] == "Bulk onboarding initiated successfully"
        assert body["total_organizations"] == 3
        assert body["status"] == "processing"
        uuid.UUID(body["batch_id"])
        assert len(dispatcher.tasks) == 3
        assert _row_counts(session_factory) == (1, 3)

    def test_same_domain_twice_counts_once(self, client, dispatcher) -> None:
        response = client.post(
            "/bulk-onboard",
            json=[{"name": "A", "domain": "a.com"}, {"name": "B", "domain": "a.com"}],
        )

        assert response.status_code == 202
        assert response.json()["total_organizations"] == 1
        assert len(dispatcher.tasks) == 1

    def test_blank_contact_email_is_accepted(self, client, session_factory) -> None:
        response = client.post(
            "/bulk-onboard",
            json=[{"name": " Acme ", "domain": " acme.io ", "contact_email": ""}],
        )

        assert response.status_code == 202
        with session_factory() as session:
            organization = session.scalars(select(Organization)).one()
        assert organization.name == "Acme"
        assert organization.domain == "acme.io"
        assert organization.contact_email is None

    def test_empty_array_is_rejected(self, client, session_factory) -> None:
        response = client.post("/bulk-onboard", json=[])

        assert response.status_code == 422
        assert response.json() == {
            "error": "Validation failed",
            "details": {"organizations": ["No organizations provided"]},
        }
        assert _row_counts(session_factory) == (0, 0)

    def test_non_array_body_is_rejected(self, client) -> None:
        response = client.post("/bulk-onboard", json={"name": "Acme", "domain": "acme.io"})

        assert response.status_code == 422
        assert response.json() == {
            "error": "Validation failed",
            "details": {"organizations": ["The organizations field must be an array."]},
        }

    def test_malformed_json_is_rejected(self, client, session_factory) -> None:
        response = client.post(
            "/bulk-onboard",
            content=b'[{"name": "Acme", "domain": ',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": "Validation failed",
            "details": {"organizations": ["The request body must be valid JSON."]},
        }
        assert _row_counts(session_factory) == (0, 0)

    def test_error_envelope_is_documented(self, client) -> None:
        schema = client.get("/openapi.json").json()

        assert "ErrorResponse" in schema["components"]["schemas"]
        bulk_responses = schema["paths"]["/bulk-onboard"]["post"]["responses"]
        assert bulk_responses["422"]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponse"
        }
        batch_responses = schema["paths"]["/batches/{batch_id}"]["get"]["responses"]
        assert "404" in batch_responses

    def test_field_errors_are_keyed_by_index(self, client, dispatcher, session_factory) -> None:
        response = client.post(
            "/bulk-onboard",
            json=[
                {"name": "Fine", "domain": "fine.io"},
                {"name": "", "contact_email": "not-an-email"},
            ],
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["details"] == {
            "1.name": ["Organization name is required"],
            "1.domain": ["Organization domain is required"],
            "1.contact_email": ["Contact email must be a valid email address"],
        }
        assert dispatcher.tasks == []
        assert _row_counts(session_factory) == (0, 0)

    def test_overlong_name_is_rejected(self, client) -> None:
        response = client.post("/bulk-onboard", json=[{"name": "x" * 256, "domain": "acme.io"}])

        assert response.status_code == 422
        assert response.json()["details"] == {
            "0.name": ["The 0.name field must not be greater than 255 characters."]
        }

    def test_more_than_thousand_is_rejected(self, client, dispatcher, session_factory) -> None:
        response = client.post("/bulk-onboard", json=_organizations(1001))

        assert response.status_code == 422
        assert response.json() == {"error": "Maximum 1000 organizations allowed per request"}
        assert dispatcher.tasks == []
        assert _row_counts(session_factory) == (0, 0)

    def test_capacity_follows_settings(self, client, settings) -> None:
        settings["onboarding"] = OnboardingSettings(max_batch_size=2)

        response = client.post("/bulk-onboard", json=_organizations(3))

        assert response.status_code == 422
        assert response.json() == {"error": "Maximum 2 organizations allowed per request"}

    def test_processing_failure_hides_detail(self, client, monkeypatch) -> None:
        def _fail(self, *, db, organizations):
            raise BulkOnboardError("Failed to process bulk onboarding request.") from RuntimeError("db down")

        monkeypatch.setattr(BulkOnboardService, "process_bulk_onboarding", _fail)

        response = client.post("/bulk-onboard", json=_organizations(1))

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to process bulk onboarding request",
            "details": "Internal server error",
        }

    def test_processing_failure_shows_detail_in_debug(self, client, settings, monkeypatch) -> None:
        settings["app"] = AppSettings(debug=True)

        def _fail(self, *, db, organizations):
            raise BulkOnboardError("Failed to process bulk onboarding request.") from RuntimeError("db down")

        monkeypatch.setattr(BulkOnboardService, "process_bulk_onboarding", _fail)

        response = client.post("/bulk-onboard", json=_organizations(1))

        assert response.status_code == 500
        assert response.json()["details"] == "db down"


# ---------------------------------------------------------------------------
# Batch inspection
# ---------------------------------------------------------------------------


class TestBatchEndpoints:
    def test_batch_status(self, client) -> None:
        batch_id = client.post("/bulk-onboard", json=_organizations(2)).json()["batch_id"]

        response = client.get(f"/batches/{batch_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["batch_id"] == batch_id
        assert body["total_organizations"] == 2
        assert body["processed_organizations"] == 0
        assert body["status_counts"] == {"pending": 2, "processing": 0, "completed": 0, "failed": 0}

    def test_unknown_batch_is_404(self, client) -> None:
        batch_id = uuid.uuid4()

        response = client.get(f"/batches/{batch_id}")

        assert response.status_code == 404
        assert response.json() == {"error": "Batch not found", "details": {"batch_id": str(batch_id)}}

    def test_unknown_batch_organizations_is_404(self, client) -> None:
        batch_id = uuid.uuid4()

        response = client.get(f"/batches/{batch_id}/organizations")

        assert response.status_code == 404
        assert response.json() == {"error": "Batch not found", "details": {"batch_id": str(batch_id)}}

    def test_batch_organizations(self, client) -> None:
        batch_id = client.post("/bulk-onboard", json=_organizations(2)).json()["batch_id"]

        response = client.get(f"/batches/{batch_id}/organizations", params={"status": "pending"})

        assert response.status_code == 200
        organizations = response.json()["organizations"]
        assert sorted(item["domain"] for item in organizations) == ["org-0.acme.io", "org-1.acme.io"]
        assert all(item["status"] == "pending" for item in organizations)
        assert all(item["failed_reason"] is None for item in organizations)

    def test_batch_organizations_rejects_unknown_status(self, client) -> None:
        batch_id = client.post("/bulk-onboard", json=_organizations(1)).json()["batch_id"]

        response = client.get(f"/batches/{batch_id}/organizations", params={"status": "done"})

        assert response.status_code == 422
