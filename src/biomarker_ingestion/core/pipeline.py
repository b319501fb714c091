# ============================================================================
# src/biomarker_ingestion/core/pipeline.py
# ============================================================================
"""
Ingestion Pipeline

Runs one document through:
    text extraction -> model invocation -> schema validation
    -> duplicate check -> persistence

strictly in that order, threading a per-run ProcessingLog through every
stage.

Outcomes:
- PipelineFailure raised: extraction, model call or response parsing
  failed; nothing was persisted.
- PipelineResult(status=cancelled): duplicates found and force_overwrite
  not set; nothing was inserted.
- PipelineResult(status=completed|partial): persistence ran; per-table
  outcomes are in per_table. Records discarded by validation and rejected
  table groups count as errors of their table, so they make a run partial.

Usage:
    from biomarker_ingestion import run_ingestion

    result = await run_ingestion(patient_id="p1", text=report_text)
    print(result.total_inserted, result.status)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .persistence import PersistenceOrchestrator
from .processing_log import LogListener, PipelineStep, ProcessingLog
from .results import PipelineResult, RunStatus, TableResult
from ..dedup import DOCUMENT_LOG_TABLE, DuplicateDetector, DuplicateMatch
from ..extractors import TextExtractionAdapter
from ..llm import ExtractionEnvelope, ModelInvocationClient
from ..schema import SchemaRegistry, get_registry
from ..storage import OWNER_COLUMN, RecordStore, SQLiteRecordStore
from ..utils.exceptions import DuplicateDetected, ExtractionFailure, IngestionError
from ..validation import EnvelopeValidator, ValidatedGroup, ValidatedRecord, ValidationReport

logger = logging.getLogger(__name__)


@dataclass
class IngestionRequest:
    """Input for one run: file bytes, pasted text, or both (text is the fallback)."""
    patient_id: str
    data: Optional[bytes] = None
    text: Optional[str] = None
    force_overwrite: bool = False
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class IngestionPipeline:

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        client: Optional[ModelInvocationClient] = None,
        registry: Optional[SchemaRegistry] = None,
        extractor: Optional[TextExtractionAdapter] = None,
        detector: Optional[DuplicateDetector] = None,
        record_document_log: Optional[bool] = None
    ):
        from ..config import ingestion_settings

        self.registry = registry or get_registry()
        self.store = store or SQLiteRecordStore(registry=self.registry)
        self.client = client or ModelInvocationClient(registry=self.registry)
        self.extractor = extractor or TextExtractionAdapter()
        self.validator = EnvelopeValidator(self.registry)
        self.detector = detector or DuplicateDetector(self.store)
        self.persistence = PersistenceOrchestrator(self.store)
        self.record_document_log = (
            ingestion_settings.RECORD_DOCUMENT_LOG if record_document_log is None else record_document_log
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    async def close(self):
        await self.client.close()
        await self.store.close()

    async def run(self, request: IngestionRequest, log: Optional[ProcessingLog] = None) -> PipelineResult:
        """
        Run one ingestion. The log is closed when the run ends, whether it
        returned or raised.
        """
        log = log if log is not None else ProcessingLog()
        try:
            return await self._run(request, log)
        except IngestionError as e:
            log.error(PipelineStep.PROCESS_ERROR, f"Processing failed: {e}", {"error_type": type(e).__name__})
            raise
        finally:
            log.close()

    async def _run(self, request: IngestionRequest, log: ProcessingLog) -> PipelineResult:
        if not request.patient_id:
            raise ValueError("patient_id is required")

        text = await self._obtain_text(request, log)
        envelope = await self.client.invoke(text, log, file_name=request.file_name)
        report = self.validator.validate_envelope(envelope, log)
        discarded = report.discarded

        records_by_table, duplicates = await self._check_duplicates(text, report.groups, request.patient_id, log)

        try:
            self._ensure_insert_allowed(duplicates, request.force_overwrite, log)
        except DuplicateDetected as e:
            log.warning(PipelineStep.DUPLICATE_CHECK, f"{e}", {"duplicates": e.duplicates})
            return self._result(envelope, log, (), RunStatus.CANCELLED, duplicates, discarded)

        per_table = await self.persistence.persist(records_by_table, request.patient_id, log)
        per_table = self._with_validation_errors(per_table, report)
        status = RunStatus.PARTIAL if any(t.errors for t in per_table) else RunStatus.COMPLETED

        if self.record_document_log:
            await self._record_document(text, request, envelope, per_table, status, log)

        total = sum(t.inserted_count for t in per_table)
        log.info(
            PipelineStep.DATABASE_MAPPING,
            f"Processing {status.value}: {total} record(s) inserted, "
            f"{sum(len(t.errors) for t in per_table)} error(s)",
        )
        return self._result(envelope, log, per_table, status, duplicates, discarded)

    async def _obtain_text(self, request: IngestionRequest, log: ProcessingLog) -> str:
        step = PipelineStep.TEXT_EXTRACTION
        supplied = request.text if request.text and request.text.strip() else None

        if request.data:
            text, error = await self.extractor.extract(
                request.data, log, mime_hint=request.mime_type, file_name=request.file_name
            )
            if text:
                return text
            if supplied is None:
                raise ExtractionFailure(f"Text extraction failed: {error}")
            log.info(step, f"File extraction failed; using supplied text ({len(supplied)} characters)")
            return supplied

        if supplied is None:
            log.error(step, "No document or text provided")
            raise ExtractionFailure("No document or text provided")

        log.success(step, f"Using supplied text ({len(supplied)} characters)", {"characters": len(supplied)})
        return supplied

    async def _check_duplicates(
        self,
        text: str,
        groups: List[ValidatedGroup],
        patient_id: str,
        log: ProcessingLog
    ):
        """Records to insert per table (unique first) and all duplicate matches."""
        log.processing(PipelineStep.DUPLICATE_CHECK, "Checking for duplicate data...")

        duplicates: List[DuplicateMatch] = []
        records_by_table: Dict[str, List[ValidatedRecord]] = {}

        document_match = await self.detector.check_document(text, patient_id, log)
        if document_match is not None:
            duplicates.append(document_match)

        for group in groups:
            partition = await self.detector.partition(group.schema, group.records, patient_id, log)
            duplicates.extend(partition.duplicates)
            records_by_table[group.table_key] = partition.unique + [
                m.record for m in partition.duplicates if m.record is not None
            ]

        if not duplicates:
            log.success(PipelineStep.DUPLICATE_CHECK, "No duplicates found")
        return records_by_table, duplicates

    @staticmethod
    def _ensure_insert_allowed(duplicates: List[DuplicateMatch], force_overwrite: bool, log: ProcessingLog):
        if not duplicates:
            return
        details = [d.to_dict() for d in duplicates]
        if not force_overwrite:
            raise DuplicateDetected(
                f"Found {len(duplicates)} potential duplicate(s); nothing inserted. "
                f"Re-run with force_overwrite to insert anyway",
                duplicates=details,
            )
        log.warning(
            PipelineStep.DUPLICATE_CHECK,
            f"Proceeding despite {len(duplicates)} potential duplicate(s) (force_overwrite)",
            {"duplicates": details},
        )

    @staticmethod
    def _with_validation_errors(per_table: List[TableResult], report: ValidationReport) -> List[TableResult]:
        """Persistence results plus validation errors, which come first within a table."""
        results = list(per_table)
        by_table = {t.table: t for t in results}

        for group in report.groups:
            if not group.errors:
                continue
            result = by_table.get(group.table_key)
            if result is None:
                result = by_table[group.table_key] = TableResult(table=group.table_key)
                results.append(result)
            result.errors[:0] = group.errors

        for table_key, errors in report.rejected.items():
            results.append(TableResult(table=table_key, errors=list(errors)))
        return results

    async def _record_document(
        self,
        text: str,
        request: IngestionRequest,
        envelope: ExtractionEnvelope,
        per_table: List[TableResult],
        status: RunStatus,
        log: ProcessingLog
    ):
        step = PipelineStep.DATABASE_MAPPING
        inserted = sum(t.inserted_count for t in per_table)
        # Only documents that stored data are fingerprinted
        if inserted == 0:
            log.info(step, f"Nothing inserted; not recording document in {DOCUMENT_LOG_TABLE}")
            return

        row = {
            OWNER_COLUMN: request.patient_id,
            "text_fingerprint": self.detector.fingerprint(text),
            "file_name": request.file_name,
            "document_type": envelope.document_type,
            "confidence": envelope.confidence,
            "processing_status": status.value,
            "extracted_char_count": len(text),
            "total_inserted": inserted,
        }
        log.processing(
            step,
            f"Recording document in {DOCUMENT_LOG_TABLE}",
            {"table": DOCUMENT_LOG_TABLE, "text_fingerprint": row["text_fingerprint"]},
        )
        try:
            saved = await self.store.insert(DOCUMENT_LOG_TABLE, [row])
        except Exception as e:
            # Data rows are already committed at this point
            log.warning(
                step,
                f"Could not record document in {DOCUMENT_LOG_TABLE}: {e}",
                {"table": DOCUMENT_LOG_TABLE, "error": str(e)},
            )
            return

        log.success(
            step,
            f"Recorded document in {DOCUMENT_LOG_TABLE}",
            {"table": DOCUMENT_LOG_TABLE, "ids": [r.get("id") for r in saved]},
        )

    @staticmethod
    def _result(
        envelope: ExtractionEnvelope,
        log: ProcessingLog,
        per_table,
        status: RunStatus,
        duplicates: List[DuplicateMatch],
        discarded: int
    ) -> PipelineResult:
        return PipelineResult(
            per_table=tuple(per_table),
            status=status,
            document_type=envelope.document_type,
            confidence=envelope.confidence,
            recommendations=tuple(envelope.recommendations),
            duplicates=tuple(d.to_dict() for d in duplicates),
            discarded_records=discarded,
            log_entries=log.entries,
        )


async def run_ingestion(
    patient_id: str,
    data: Optional[bytes] = None,
    text: Optional[str] = None,
    force_overwrite: bool = False,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    log: Optional[ProcessingLog] = None,
    on_log: Optional[LogListener] = None,
    pipeline: Optional[IngestionPipeline] = None
) -> PipelineResult:
    """
    Ingest one document for a patient.

    Pass `on_log` to receive processing-log entries as they are written.
    A pipeline created here is closed before returning.
    """
    log = log if log is not None else ProcessingLog()
    if on_log is not None:
        log.subscribe(on_log)

    request = IngestionRequest(
        patient_id=patient_id,
        data=data,
        text=text,
        force_overwrite=force_overwrite,
        file_name=file_name,
        mime_type=mime_type,
    )

    if pipeline is not None:
        return await pipeline.run(request, log)

    pipeline = IngestionPipeline()
    try:
        return await pipeline.run(request, log)
    finally:
        await pipeline.close()
