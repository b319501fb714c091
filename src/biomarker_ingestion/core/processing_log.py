# ============================================================================
# src/biomarker_ingestion/core/processing_log.py
# ============================================================================
"""
Processing Log

Ordered, append-only record of what a single ingestion run did. Every stage
writes to it; the caller reads it for progress reporting and audit.

Entries are also mirrored to the standard logger so server logs carry the
same trail.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class LogStatus(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class PipelineStep(str, Enum):
    """Step names used by the pipeline stages."""
    TEXT_EXTRACTION = "Text Extraction"
    AI_PROCESSING = "AI Processing"
    SCHEMA_VALIDATION = "Schema Validation"
    DUPLICATE_CHECK = "Duplicate Check"
    DATABASE_MAPPING = "Database Mapping"
    PROCESS_ERROR = "Process Error"


_LEVELS = {
    LogStatus.ERROR: logging.ERROR,
    LogStatus.WARNING: logging.WARNING,
}


@dataclass(frozen=True)
class ProcessingLogEntry:
    """One step/status/message record."""
    id: str
    sequence: int
    timestamp: datetime
    step: str
    status: LogStatus
    message: str
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
            "status": self.status.value,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


LogListener = Callable[[ProcessingLogEntry], None]


@dataclass
class ProcessingLog:
    """
    Per-run log. Not shared between runs.

    Listeners registered with subscribe() receive each entry as it is
    appended, which is how callers stream progress. Once close() is called
    the log is frozen.
    """
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _entries: List[ProcessingLogEntry] = field(default_factory=list, repr=False)
    _listeners: List[LogListener] = field(default_factory=list, repr=False)
    _closed: bool = field(default=False, repr=False)

    def add(
        self,
        step: str,
        status: LogStatus,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> ProcessingLogEntry:
        if self._closed:
            raise RuntimeError(f"Processing log {self.run_id} is closed")

        status = LogStatus(status)
        step_name = step.value if isinstance(step, PipelineStep) else str(step)
        entry = ProcessingLogEntry(
            id=uuid.uuid4().hex,
            sequence=len(self._entries),
            timestamp=datetime.now(timezone.utc),
            step=step_name,
            status=status,
            message=message,
            data=data,
        )
        self._entries.append(entry)

        logger.log(
            _LEVELS.get(status, logging.INFO),
            f"[{step_name}] {status.value}: {message}",
            extra={"step": step_name, "status": status.value, "run_id": self.run_id},
        )

        for listener in self._listeners:
            listener(entry)

        return entry

    def processing(self, step: str, message: str, data: Optional[Dict[str, Any]] = None) -> ProcessingLogEntry:
        return self.add(step, LogStatus.PROCESSING, message, data)

    def success(self, step: str, message: str, data: Optional[Dict[str, Any]] = None) -> ProcessingLogEntry:
        return self.add(step, LogStatus.SUCCESS, message, data)

    def error(self, step: str, message: str, data: Optional[Dict[str, Any]] = None) -> ProcessingLogEntry:
        return self.add(step, LogStatus.ERROR, message, data)

    def warning(self, step: str, message: str, data: Optional[Dict[str, Any]] = None) -> ProcessingLogEntry:
        return self.add(step, LogStatus.WARNING, message, data)

    def info(self, step: str, message: str, data: Optional[Dict[str, Any]] = None) -> ProcessingLogEntry:
        return self.add(step, LogStatus.INFO, message, data)

    def subscribe(self, listener: LogListener) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def entries(self) -> Tuple[ProcessingLogEntry, ...]:
        return tuple(self._entries)

    def filter(
        self,
        status: Optional[LogStatus] = None,
        step: Optional[str] = None
    ) -> List[ProcessingLogEntry]:
        """Entries matching the given status and/or step, in order."""
        if isinstance(step, PipelineStep):
            step = step.value
        return [
            e for e in self._entries
            if (status is None or e.status == status) and (step is None or e.step == step)
        ]

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __iter__(self) -> Iterator[ProcessingLogEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
