# ============================================================================
# FILE: tests/unit/test_duplicate_detector.py
# ============================================================================
"""
Tests for duplicate detection ahead of persistence
"""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from biomarker_ingestion.core.processing_log import LogStatus, ProcessingLog
from biomarker_ingestion.dedup import (
    DOCUMENT_LOG_TABLE,
    DuplicateDetector,
    OnDuplicateCheckError,
    text_fingerprint,
)
from biomarker_ingestion.storage import SQLiteRecordStore
from biomarker_ingestion.utils.exceptions import StoreError
from biomarker_ingestion.validation import ValidatedRecord


class BrokenSelectStore(SQLiteRecordStore):
    """Store whose reads always fail."""

    async def select(self, table, predicate, limit=None):
        raise StoreError("database is locked", table=table)


def _lab(result_name="Hemoglobin A1c", timestamp="2024-01-15T08:30:00+00:00", **extra):
    fields = {"result_name": result_name, **extra}
    if timestamp is not None:
        fields["measurement_timestamp"] = timestamp
    return ValidatedRecord(table="lab_results", fields=fields, source_key="LAB_RESULTS")


def _heart(timestamp="2024-01-15T09:00:00+00:00"):
    return ValidatedRecord(
        table="heart_metrics",
        fields={"device_type": "manual", "measurement_timestamp": timestamp, "systolic_bp": 120},
        source_key="HEART_METRICS",
    )


class TestFingerprint:
    """Test document fingerprinting"""

    def test_sha256_of_prefix(self):
        text = "x" * 600
        assert text_fingerprint(text) == hashlib.sha256(("x" * 500).encode()).hexdigest()

    def test_only_prefix_matters(self):
        base = "A" * 500
        assert text_fingerprint(base + "tail one") == text_fingerprint(base + "tail two")
        assert text_fingerprint("short a") != text_fingerprint("short b")


class TestBuildFilter:
    """Test existence predicates"""

    def test_lab_key_includes_timestamp(self, store, registry):
        detector = DuplicateDetector(store)
        predicate = detector.build_filter(registry.tables["lab_results"], _lab(), "p1")

        assert predicate.equals == {
            "patient_id": "p1",
            "result_name": "Hemoglobin A1c",
            "measurement_timestamp": "2024-01-15T08:30:00+00:00",
        }
        assert predicate.created_since is None

    def test_lab_without_timestamp_uses_lookback(self, store, registry):
        now = datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)
        detector = DuplicateDetector(store, lookback_hours=24, clock=lambda: now)

        predicate = detector.build_filter(registry.tables["lab_results"], _lab(timestamp=None), "p1")

        assert predicate.equals == {"patient_id": "p1", "result_name": "Hemoglobin A1c"}
        assert predicate.created_since == now - timedelta(hours=24)

    def test_biomarker_key(self, store, registry):
        detector = DuplicateDetector(store)
        predicate = detector.build_filter(registry.tables["heart_metrics"], _heart(), "p1")
        assert predicate.equals == {"patient_id": "p1", "measurement_timestamp": "2024-01-15T09:00:00+00:00"}


class TestDuplicateDetector:
    """Test partitioning against existing rows"""

    @pytest.mark.asyncio
    async def test_no_existing_rows(self, store, registry):
        detector = DuplicateDetector(store)
        partition = await detector.partition(registry.tables["lab_results"], [_lab()], "p1", ProcessingLog())

        assert len(partition.unique) == 1
        assert partition.duplicates == []

    @pytest.mark.asyncio
    async def test_lab_duplicate_found(self, store, registry):
        await store.insert("lab_results", [{"patient_id": "p1", **_lab().fields}])
        log = ProcessingLog()

        partition = await DuplicateDetector(store).partition(
            registry.tables["lab_results"], [_lab(), _lab(result_name="LDL")], "p1", log
        )

        assert [r.fields["result_name"] for r in partition.unique] == ["LDL"]
        assert len(partition.duplicates) == 1
        assert partition.duplicates[0].existing["id"] is not None
        assert len(log.filter(status=LogStatus.WARNING)) == 1

    @pytest.mark.asyncio
    async def test_other_patient_is_not_a_duplicate(self, store, registry):
        await store.insert("lab_results", [{"patient_id": "p2", **_lab().fields}])

        partition = await DuplicateDetector(store).partition(
            registry.tables["lab_results"], [_lab()], "p1", ProcessingLog()
        )
        assert partition.duplicates == []

    @pytest.mark.asyncio
    async def test_different_timestamp_is_not_a_duplicate(self, store, registry):
        await store.insert("lab_results", [{"patient_id": "p1", **_lab().fields}])

        partition = await DuplicateDetector(store).partition(
            registry.tables["lab_results"], [_lab(timestamp="2024-04-15T08:30:00+00:00")], "p1", ProcessingLog()
        )
        assert partition.duplicates == []

    @pytest.mark.asyncio
    async def test_lab_lookback_window(self, store, registry):
        await store.insert("lab_results", [{"patient_id": "p1", "result_name": "Hemoglobin A1c"}])
        schema = registry.tables["lab_results"]
        record = _lab(timestamp=None)

        recent = DuplicateDetector(store)
        partition = await recent.partition(schema, [record], "p1", ProcessingLog())
        assert len(partition.duplicates) == 1

        later = DuplicateDetector(store, clock=lambda: datetime.now(timezone.utc) + timedelta(days=2))
        partition = await later.partition(schema, [record], "p1", ProcessingLog())
        assert partition.duplicates == []

    @pytest.mark.asyncio
    async def test_biomarker_duplicate(self, store, registry):
        await store.insert("heart_metrics", [{"patient_id": "p1", **_heart().fields}])

        partition = await DuplicateDetector(store).partition(
            registry.tables["heart_metrics"], [_heart()], "p1", ProcessingLog()
        )
        assert len(partition.duplicates) == 1

    @pytest.mark.asyncio
    async def test_check_error_proceeds_as_unique(self, tmp_path, registry):
        store = BrokenSelectStore(db_path=tmp_path / "broken.db", registry=registry)
        detector = DuplicateDetector(store, on_check_error=OnDuplicateCheckError.PROCEED_AS_UNIQUE)
        log = ProcessingLog()

        partition = await detector.partition(registry.tables["lab_results"], [_lab()], "p1", log)

        assert len(partition.unique) == 1
        assert partition.duplicates == []
        warnings = log.filter(status=LogStatus.WARNING)
        assert len(warnings) == 1
        assert "proceedAsUnique" in warnings[0].message

    @pytest.mark.asyncio
    async def test_check_error_treated_as_duplicate(self, tmp_path, registry):
        store = BrokenSelectStore(db_path=tmp_path / "broken.db", registry=registry)
        detector = DuplicateDetector(store, on_check_error="treatAsDuplicate")

        partition = await detector.partition(registry.tables["lab_results"], [_lab()], "p1", ProcessingLog())

        assert partition.unique == []
        assert partition.duplicates[0].check_failed

    @pytest.mark.asyncio
    async def test_default_policy_is_proceed_as_unique(self, store):
        assert DuplicateDetector(store).on_check_error == OnDuplicateCheckError.PROCEED_AS_UNIQUE


class TestDocumentCheck:
    """Test document-level fingerprint matching"""

    @pytest.mark.asyncio
    async def test_new_document(self, store):
        match = await DuplicateDetector(store).check_document("report text", "p1", ProcessingLog())
        assert match is None

    @pytest.mark.asyncio
    async def test_seen_document(self, store):
        detector = DuplicateDetector(store)
        await store.insert(DOCUMENT_LOG_TABLE, [{
            "patient_id": "p1",
            "text_fingerprint": detector.fingerprint("report text"),
        }])
        log = ProcessingLog()

        match = await detector.check_document("report text", "p1", log)

        assert match.table == DOCUMENT_LOG_TABLE
        assert match.record is None
        assert len(log.filter(status=LogStatus.WARNING)) == 1

    @pytest.mark.asyncio
    async def test_document_check_error_fails_open(self, tmp_path, registry):
        store = BrokenSelectStore(db_path=tmp_path / "broken.db", registry=registry)
        match = await DuplicateDetector(store).check_document("report text", "p1", ProcessingLog())
        assert match is None
