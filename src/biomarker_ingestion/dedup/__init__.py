# ============================================================================
# src/biomarker_ingestion/dedup/__init__.py
# ============================================================================
"""
Duplicate detection ahead of persistence.
"""

from .duplicate_detector import (
    DOCUMENT_LOG_TABLE,
    DuplicateDetector,
    DuplicateMatch,
    DuplicatePartition,
    OnDuplicateCheckError,
    text_fingerprint,
)

__all__ = [
    'DOCUMENT_LOG_TABLE',
    'DuplicateDetector',
    'DuplicateMatch',
    'DuplicatePartition',
    'OnDuplicateCheckError',
    'text_fingerprint',
]
