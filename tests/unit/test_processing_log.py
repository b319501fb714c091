# ============================================================================
# FILE: tests/unit/test_processing_log.py
# ============================================================================
"""
Tests for the per-run processing log and result types
"""

import json
import logging

import pytest

from biomarker_ingestion.core.processing_log import (
    LogStatus,
    PipelineStep,
    ProcessingLog,
)
from biomarker_ingestion.core.results import PipelineResult, RunStatus, TableResult
from biomarker_ingestion.utils.logging import JsonFormatter


class TestProcessingLog:
    """Test ProcessingLog ordering and filtering"""

    def test_entries_keep_append_order(self):
        log = ProcessingLog()
        log.processing(PipelineStep.TEXT_EXTRACTION, "Extracting")
        log.success(PipelineStep.TEXT_EXTRACTION, "Extracted")
        log.warning(PipelineStep.SCHEMA_VALIDATION, "Dropped field")

        assert [e.sequence for e in log.entries] == [0, 1, 2]
        assert [e.status for e in log] == [LogStatus.PROCESSING, LogStatus.SUCCESS, LogStatus.WARNING]
        assert log.entries[0].step == "Text Extraction"

    def test_filter_by_status_and_step(self):
        log = ProcessingLog()
        log.error(PipelineStep.SCHEMA_VALIDATION, "bad record")
        log.error(PipelineStep.DATABASE_MAPPING, "insert failed")
        log.info(PipelineStep.SCHEMA_VALIDATION, "summary")

        assert len(log.filter(status=LogStatus.ERROR)) == 2
        assert len(log.filter(step=PipelineStep.SCHEMA_VALIDATION)) == 2
        only = log.filter(status=LogStatus.ERROR, step=PipelineStep.DATABASE_MAPPING)
        assert [e.message for e in only] == ["insert failed"]

    def test_entry_ids_are_unique(self):
        log = ProcessingLog()
        for i in range(5):
            log.info("Custom Step", f"message {i}")
        assert len({e.id for e in log.entries}) == 5

    def test_closed_log_rejects_entries(self):
        log = ProcessingLog()
        log.info(PipelineStep.TEXT_EXTRACTION, "start")
        log.close()

        assert log.closed
        with pytest.raises(RuntimeError):
            log.info(PipelineStep.TEXT_EXTRACTION, "too late")
        assert len(log) == 1

    def test_listeners_receive_entries(self):
        log = ProcessingLog()
        received = []
        log.subscribe(received.append)

        entry = log.success(PipelineStep.AI_PROCESSING, "done", {"attempts": 1})

        assert received == [entry]

    def test_to_list_serializes(self):
        log = ProcessingLog()
        log.success(PipelineStep.AI_PROCESSING, "done", {"attempts": 2})
        log.info(PipelineStep.DUPLICATE_CHECK, "no data")

        data = log.to_list()
        assert data[0]["status"] == "success"
        assert data[0]["data"] == {"attempts": 2}
        assert "data" not in data[1]
        json.dumps(data)

    def test_mirrors_to_standard_logger(self, caplog):
        log = ProcessingLog()
        with caplog.at_level(logging.INFO, logger="biomarker_ingestion.core.processing_log"):
            log.error(PipelineStep.DATABASE_MAPPING, "insert failed")
            log.info(PipelineStep.DATABASE_MAPPING, "summary")

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.ERROR, logging.INFO]
        assert caplog.records[0].step == "Database Mapping"
        assert caplog.records[0].run_id == log.run_id


class TestJsonFormatter:
    """Test JSON log formatting"""

    def test_includes_processing_log_extras(self):
        record = logging.LogRecord(
            name="test", level=logging.WARNING, pathname=__file__, lineno=1,
            msg="hello", args=(), exc_info=None,
        )
        record.step = "Duplicate Check"
        record.status = "warning"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "WARNING"
        assert data["step"] == "Duplicate Check"
        assert data["timestamp"].endswith("+00:00")


class TestPipelineResult:
    """Test result aggregation"""

    def test_totals(self):
        result = PipelineResult(
            per_table=(
                TableResult("lab_results", inserted_count=3),
                TableResult("heart_metrics", errors=["Insert into heart_metrics failed: boom"]),
            ),
            status=RunStatus.PARTIAL,
        )

        assert result.total_inserted == 3
        assert result.total_errors == 1
        assert not result.table("heart_metrics").succeeded
        assert result.table("sleep_metrics") is None

    def test_to_dict_keys(self):
        result = PipelineResult(per_table=(TableResult("lab_results", inserted_count=2),))
        data = result.to_dict()

        assert data["status"] == "completed"
        assert data["totalInserted"] == 2
        assert data["totalErrors"] == 0
        assert data["perTable"] == [{"table": "lab_results", "insertedCount": 2, "errors": []}]

    def test_cancelled(self):
        result = PipelineResult(status=RunStatus.CANCELLED)
        assert result.cancelled
        assert result.total_inserted == 0
