# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import json

import pytest

from biomarker_ingestion.core.processing_log import ProcessingLog
from biomarker_ingestion.llm import ModelInvocationClient, ModelResponse, RetryPolicy
from biomarker_ingestion.schema import SchemaRegistry
from biomarker_ingestion.storage import SQLiteRecordStore


TEST_MODEL_CONFIG = {
    "azure_endpoint": "https://example.openai.azure.com",
    "azure_api_key": "test-key",
    "azure_deployment": "gpt-4o",
    "azure_api_version": "2024-02-01",
    "repair_json": False,
}


def _chat_response(content, status=200, headers=None) -> ModelResponse:
    """Chat-completions response whose message content is `content`."""
    if not isinstance(content, str):
        content = json.dumps(content)
    body = json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})
    return ModelResponse(status=status, headers=headers or {}, body=body)


def _rate_limited(retry_after=None) -> ModelResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else {}
    return ModelResponse(status=429, headers=headers, body='{"error": "Too Many Requests"}')


@pytest.fixture
def chat_response():
    return _chat_response


@pytest.fixture
def rate_limited():
    return _rate_limited


@pytest.fixture
def registry():
    """Registry over the built-in tables with a fixed flag default."""
    return SchemaRegistry(unknown_flag_default="normal")


@pytest.fixture
def log():
    return ProcessingLog()


@pytest.fixture
def store(tmp_path, registry):
    """Empty SQLite store in a temporary directory."""
    return SQLiteRecordStore(db_path=tmp_path / "records.db", registry=registry, unique_keys=False)


@pytest.fixture
def model_client(registry):
    """Model client with test credentials; tests replace `_post`."""
    return ModelInvocationClient(
        registry=registry,
        config=dict(TEST_MODEL_CONFIG),
        retry_policy=RetryPolicy(),
    )


@pytest.fixture
def sample_lab_text():
    """Sample lab report text for testing"""
    return """
    Quest Diagnostics Laboratory Report

    Patient: Jane Doe
    Collected: 2024-01-15 08:30

    CHEMISTRY

    Test                Result      Reference Range    Flag
    ----------------------------------------------------------------
    Hemoglobin A1c      6.1 %       4.0-5.6 %          H
    Glucose, Fasting    98 mg/dL    70-99 mg/dL
    """


@pytest.fixture
def a1c_envelope():
    """Model answer for sample_lab_text."""
    return {
        "documentType": "lab_report",
        "confidence": 0.92,
        "extractedFields": {
            "LAB_RESULTS": [
                {
                    "result_name": "Hemoglobin A1c",
                    "numeric_value": "6.1",
                    "unit": "%",
                    "reference_range_min": 4.0,
                    "reference_range_max": 5.6,
                    "abnormal_flag": "H",
                    "measurement_timestamp": "2024-01-15T08:30:00Z",
                },
                {
                    "result_name": "Glucose, Fasting",
                    "numeric_value": 98,
                    "unit": "mg/dL",
                    "abnormal_flag": "normal",
                    "measurement_timestamp": "2024-01-15T08:30:00Z",
                },
            ]
        },
        "recommendations": ["Repeat A1c in 3 months"],
    }
