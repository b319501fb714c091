# ============================================================================
# src/biomarker_ingestion/core/results.py
# ============================================================================
"""
Pipeline result types.

A PipelineResult only describes runs that reached the persistence stage
(or were cancelled on duplicates). Runs that fail earlier raise a
PipelineFailure instead.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .processing_log import ProcessingLogEntry


class RunStatus(str, Enum):
    COMPLETED = "completed"     # every table succeeded
    PARTIAL = "partial"         # at least one table recorded validation or insert errors
    CANCELLED = "cancelled"     # duplicates found, overwrite not requested


@dataclass
class TableResult:
    table: str
    inserted_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "insertedCount": self.inserted_count,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class PipelineResult:
    per_table: Tuple[TableResult, ...] = ()
    status: RunStatus = RunStatus.COMPLETED
    document_type: Optional[str] = None
    confidence: Optional[float] = None
    recommendations: Tuple[str, ...] = ()
    duplicates: Tuple[Dict[str, Any], ...] = ()
    discarded_records: int = 0
    log_entries: Tuple[ProcessingLogEntry, ...] = ()

    @property
    def total_inserted(self) -> int:
        return sum(t.inserted_count for t in self.per_table)

    @property
    def total_errors(self) -> int:
        return sum(len(t.errors) for t in self.per_table)

    @property
    def cancelled(self) -> bool:
        return self.status == RunStatus.CANCELLED

    def table(self, name: str) -> Optional[TableResult]:
        for result in self.per_table:
            if result.table == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "perTable": [t.to_dict() for t in self.per_table],
            "totalInserted": self.total_inserted,
            "totalErrors": self.total_errors,
            "documentType": self.document_type,
            "confidence": self.confidence,
            "recommendations": list(self.recommendations),
            "duplicates": list(self.duplicates),
            "discardedRecords": self.discarded_records,
        }
