# ============================================================================
# src/biomarker_ingestion/__init__.py
# ============================================================================
"""
Biomarker Ingestion

Turns lab reports, wearable exports and other medical documents into
validated rows in per-patient clinical and biomarker tables, with a
processing log of every step.
"""

from .core.pipeline import IngestionPipeline, IngestionRequest, run_ingestion
from .core.processing_log import LogStatus, PipelineStep, ProcessingLog, ProcessingLogEntry
from .core.results import PipelineResult, RunStatus, TableResult
from .schema import SchemaRegistry, get_registry
from .utils.exceptions import (
    DuplicateDetected,
    ExtractionFailure,
    IngestionError,
    ModelInvocationFailure,
    PersistenceFailure,
    PipelineFailure,
    ResponseParseFailure,
)

__version__ = "0.1.0"

__all__ = [
    'IngestionPipeline',
    'IngestionRequest',
    'run_ingestion',
    'LogStatus',
    'PipelineStep',
    'ProcessingLog',
    'ProcessingLogEntry',
    'PipelineResult',
    'RunStatus',
    'TableResult',
    'SchemaRegistry',
    'get_registry',
    'DuplicateDetected',
    'ExtractionFailure',
    'IngestionError',
    'ModelInvocationFailure',
    'PersistenceFailure',
    'PipelineFailure',
    'ResponseParseFailure',
]
