# ============================================================================
# src/biomarker_ingestion/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the biomarker ingestion pipeline.

PipelineFailure and its subclasses are fatal to a run and always reach the
caller. Everything else is recovered locally and reported through the
processing log and the PipelineResult.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class FailureReason(str, Enum):
    """Why a model invocation gave up."""
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UPSTREAM = "upstream"


class IngestionError(Exception):
    """Base exception for all ingestion errors."""
    pass


class ConfigurationError(IngestionError):
    """Invalid or missing configuration."""
    pass


class PipelineFailure(IngestionError):
    """A failure that ends the run before anything is persisted."""
    pass


class ExtractionFailure(PipelineFailure):
    """Text could not be obtained from the input document."""
    pass


class ModelInvocationFailure(PipelineFailure):
    """Language-model call failed after exhausting retries."""
    def __init__(
        self,
        message: str,
        reason: FailureReason,
        status: Optional[int] = None,
        attempts: int = 0
    ):
        super().__init__(message)
        self.reason = reason
        self.status = status
        self.attempts = attempts


class ResponseParseFailure(PipelineFailure):
    """Model responded, but the body is not a usable JSON envelope."""
    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message)
        self.raw_content = raw_content


class SchemaValidationWarning(IngestionError):
    """A field or record was dropped for not meeting its table schema."""
    def __init__(self, message: str, table: str, field: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.field = field


class DuplicateDetected(IngestionError):
    """Likely duplicates exist and the caller has not asked to overwrite."""
    def __init__(self, message: str, duplicates: List[Dict[str, Any]]):
        super().__init__(message)
        self.duplicates = duplicates


class StoreError(IngestionError):
    """Persistent store operation failed."""
    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class PersistenceFailure(IngestionError):
    """Inserting one table's records failed."""
    def __init__(self, message: str, table: str):
        super().__init__(message)
        self.table = table
