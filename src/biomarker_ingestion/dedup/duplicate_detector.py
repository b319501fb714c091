# ============================================================================
# src/biomarker_ingestion/dedup/duplicate_detector.py
# ============================================================================
"""
Duplicate Detector

Heuristic existence checks run before anything is inserted:

- document log:   same text fingerprint for the same patient, any age
- clinical tests: same patient + test name + measurement time; when the
                  record has no measurement time, same patient + test
                  name created within the lookback window
- biomarkers:     same patient + measurement timestamp/date

A store error during a check is resolved by OnDuplicateCheckError. The
default, proceedAsUnique, keeps ingestion available at the cost of strict
deduplication.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..core.processing_log import PipelineStep, ProcessingLog
from ..schema import TableKind, TableSchema
from ..storage.base import OWNER_COLUMN, RecordFilter, RecordStore
from ..validation.envelope_validator import ValidatedRecord

STEP = PipelineStep.DUPLICATE_CHECK

DOCUMENT_LOG_TABLE = "document_processing_logs"


class OnDuplicateCheckError(str, Enum):
    PROCEED_AS_UNIQUE = "proceedAsUnique"
    TREAT_AS_DUPLICATE = "treatAsDuplicate"


@dataclass
class DuplicateMatch:
    table: str
    reason: str
    record: Optional[ValidatedRecord] = None
    existing: Optional[Dict[str, Any]] = None
    check_failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "reason": self.reason,
            "record": self.record.to_row() if self.record else None,
            "existing_id": (self.existing or {}).get("id"),
            "check_failed": self.check_failed,
        }


@dataclass
class DuplicatePartition:
    table: str
    unique: List[ValidatedRecord] = field(default_factory=list)
    duplicates: List[DuplicateMatch] = field(default_factory=list)


def text_fingerprint(text: str, prefix_chars: int = 500) -> str:
    """SHA-256 of the leading `prefix_chars` characters of the text."""
    return hashlib.sha256(text[:prefix_chars].encode("utf-8")).hexdigest()


class DuplicateDetector:

    def __init__(
        self,
        store: RecordStore,
        on_check_error: Optional[OnDuplicateCheckError] = None,
        lookback_hours: Optional[int] = None,
        fingerprint_chars: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        from ..config import ingestion_settings

        self.store = store
        self.on_check_error = OnDuplicateCheckError(
            on_check_error or ingestion_settings.ON_DUPLICATE_CHECK_ERROR
        )
        self.lookback = timedelta(
            hours=lookback_hours if lookback_hours is not None
            else ingestion_settings.LAB_DUPLICATE_LOOKBACK_HOURS
        )
        self.fingerprint_chars = fingerprint_chars or ingestion_settings.FINGERPRINT_PREFIX_CHARS
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(self.__class__.__name__)

    def fingerprint(self, text: str) -> str:
        return text_fingerprint(text, self.fingerprint_chars)

    def build_filter(
        self,
        schema: TableSchema,
        record: ValidatedRecord,
        patient_id: str
    ) -> Optional[RecordFilter]:
        """Existence predicate for a record, or None if it has no usable key."""
        if not schema.duplicate_key:
            return None

        present = {k: record.fields[k] for k in schema.duplicate_key if record.fields.get(k) is not None}
        if len(present) == len(schema.duplicate_key):
            return RecordFilter(equals={OWNER_COLUMN: patient_id, **present})

        if schema.kind == TableKind.CLINICAL_TEST and present:
            return RecordFilter(
                equals={OWNER_COLUMN: patient_id, **present},
                created_since=self.clock() - self.lookback,
            )
        return None

    async def check_document(
        self,
        text: str,
        patient_id: str,
        log: ProcessingLog
    ) -> Optional[DuplicateMatch]:
        """Match against earlier runs that logged the same fingerprint."""
        fingerprint = self.fingerprint(text)
        predicate = RecordFilter(equals={OWNER_COLUMN: patient_id, "text_fingerprint": fingerprint})

        try:
            existing = await self.store.select(DOCUMENT_LOG_TABLE, predicate, limit=1)
        except Exception as e:
            return self._on_error(DOCUMENT_LOG_TABLE, None, e, log)

        if not existing:
            return None

        match = DuplicateMatch(
            table=DOCUMENT_LOG_TABLE,
            reason="Similar document content found",
            existing=existing[0],
        )
        log.warning(STEP, match.reason, match.to_dict())
        return match

    async def partition(
        self,
        schema: TableSchema,
        records: List[ValidatedRecord],
        patient_id: str,
        log: ProcessingLog
    ) -> DuplicatePartition:
        result = DuplicatePartition(table=schema.name)

        for record in records:
            predicate = self.build_filter(schema, record, patient_id)
            if predicate is None:
                result.unique.append(record)
                continue

            try:
                existing = await self.store.select(schema.name, predicate, limit=1)
            except Exception as e:
                match = self._on_error(schema.name, record, e, log)
                if match is None:
                    result.unique.append(record)
                else:
                    result.duplicates.append(match)
                continue

            if not existing:
                result.unique.append(record)
                continue

            match = DuplicateMatch(
                table=schema.name,
                reason=f"{schema.name} record matching {predicate.describe()} already exists",
                record=record,
                existing=existing[0],
            )
            result.duplicates.append(match)
            log.warning(STEP, match.reason, match.to_dict())

        return result

    def _on_error(
        self,
        table: str,
        record: Optional[ValidatedRecord],
        error: Exception,
        log: ProcessingLog
    ) -> Optional[DuplicateMatch]:
        """Apply the check-error policy. None means 'treat as unique'."""
        if self.on_check_error == OnDuplicateCheckError.PROCEED_AS_UNIQUE:
            log.warning(
                STEP,
                f"Duplicate check on {table} failed ({error}); "
                f"proceeding as unique (onDuplicateCheckError={self.on_check_error.value})",
                {"table": table, "error": str(error)},
            )
            return None

        match = DuplicateMatch(
            table=table,
            reason=f"Duplicate check on {table} failed ({error}); treating as duplicate",
            record=record,
            check_failed=True,
        )
        log.warning(STEP, match.reason, match.to_dict())
        return match
