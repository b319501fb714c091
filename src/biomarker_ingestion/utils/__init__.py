# ============================================================================
# src/biomarker_ingestion/utils/__init__.py
# ============================================================================
"""
Utility modules for the ingestion pipeline.
"""

from .exceptions import (
    FailureReason,
    IngestionError,
    ConfigurationError,
    PipelineFailure,
    ExtractionFailure,
    ModelInvocationFailure,
    ResponseParseFailure,
    SchemaValidationWarning,
    DuplicateDetected,
    StoreError,
    PersistenceFailure,
)

from .logging import (
    setup_logging,
    setup_logging_from_settings,
    JsonFormatter,
)

__all__ = [
    # Exceptions
    'FailureReason',
    'IngestionError',
    'ConfigurationError',
    'PipelineFailure',
    'ExtractionFailure',
    'ModelInvocationFailure',
    'ResponseParseFailure',
    'SchemaValidationWarning',
    'DuplicateDetected',
    'StoreError',
    'PersistenceFailure',
    # Logging
    'setup_logging',
    'setup_logging_from_settings',
    'JsonFormatter',
]
