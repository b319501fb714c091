# ============================================================================
# FILE: tests/unit/test_api.py
# ============================================================================
"""
Tests for the FastAPI endpoints
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_pipeline, status_for_failure
from biomarker_ingestion import IngestionPipeline
from biomarker_ingestion.llm import ModelResponse, RetryPolicy
from biomarker_ingestion.utils.exceptions import (
    ExtractionFailure,
    FailureReason,
    ModelInvocationFailure,
    ResponseParseFailure,
)


@pytest.fixture
def api_pipeline(store, registry, model_client):
    model_client.retry_policy = RetryPolicy(max_retries=0)
    return IngestionPipeline(store=store, client=model_client, registry=registry)


@pytest.fixture
def api_client(api_pipeline):
    app.dependency_overrides[get_pipeline] = lambda: api_pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestEndpoints:
    """Test API endpoints"""

    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_schemas(self, api_client):
        response = api_client.get("/api/schemas")

        names = [t["name"] for t in response.json()["tables"]]
        assert "lab_results" in names
        assert "document_processing_logs" not in names

    def test_ingest_text(self, api_client, api_pipeline, chat_response, a1c_envelope):
        api_pipeline.client._post = AsyncMock(return_value=chat_response(a1c_envelope))

        response = api_client.post("/api/ingest", data={"patient_id": "p1", "text": "A1c 6.1 H"})

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["status"] == "completed"
        assert body["result"]["totalInserted"] == 2
        assert body["log"][0]["step"] == "Text Extraction"

    def test_ingest_file(self, api_client, api_pipeline, chat_response, a1c_envelope):
        api_pipeline.client._post = AsyncMock(return_value=chat_response(a1c_envelope))

        response = api_client.post(
            "/api/ingest",
            data={"patient_id": "p1"},
            files={"file": ("a1c.txt", b"Hemoglobin A1c 6.1 % H", "text/plain")},
        )

        assert response.status_code == 200
        assert response.json()["result"]["totalInserted"] == 2

    def test_duplicates_are_a_cancelled_result(self, api_client, api_pipeline, chat_response, a1c_envelope):
        api_pipeline.client._post = AsyncMock(return_value=chat_response(a1c_envelope))
        api_client.post("/api/ingest", data={"patient_id": "p1", "text": "A1c 6.1 H"})

        response = api_client.post("/api/ingest", data={"patient_id": "p1", "text": "A1c 6.1 H"})

        assert response.status_code == 200
        result = response.json()["result"]
        assert result["status"] == "cancelled"
        assert result["totalInserted"] == 0

    def test_requires_input(self, api_client):
        response = api_client.post("/api/ingest", data={"patient_id": "p1"})
        assert response.status_code == 400

    def test_extraction_failure_maps_to_422(self, api_client):
        response = api_client.post(
            "/api/ingest",
            data={"patient_id": "p1"},
            files={"file": ("scan.png", b"\x89PNG\r\n", "image/png")},
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error_type"] == "ExtractionFailure"
        assert detail["log"]

    def test_rate_limit_maps_to_429(self, api_client, api_pipeline):
        api_pipeline.client._post = AsyncMock(return_value=ModelResponse(status=429, body="slow down"))

        response = api_client.post("/api/ingest", data={"patient_id": "p1", "text": "A1c 6.1"})

        assert response.status_code == 429
        assert response.json()["detail"]["error_type"] == "ModelInvocationFailure"

    def test_parse_failure_maps_to_502(self, api_client, api_pipeline, chat_response):
        api_pipeline.client._post = AsyncMock(return_value=chat_response("not json at all"))

        response = api_client.post("/api/ingest", data={"patient_id": "p1", "text": "A1c 6.1"})

        assert response.status_code == 502
        assert response.json()["detail"]["error_type"] == "ResponseParseFailure"


class TestStatusMapping:
    """Test failure to HTTP status mapping"""

    def test_mapping(self):
        assert status_for_failure(ExtractionFailure("x")) == 422
        assert status_for_failure(ModelInvocationFailure("x", reason=FailureReason.RATE_LIMITED)) == 429
        assert status_for_failure(ModelInvocationFailure("x", reason=FailureReason.NETWORK)) == 502
        assert status_for_failure(ModelInvocationFailure("x", reason=FailureReason.UPSTREAM)) == 502
        assert status_for_failure(ResponseParseFailure("x")) == 502
