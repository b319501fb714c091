# ============================================================================
# src/biomarker_ingestion/validation/__init__.py
# ============================================================================
"""
Schema validation of extraction envelopes.
"""

from .envelope_validator import EnvelopeValidator, ValidatedGroup, ValidatedRecord, ValidationReport

__all__ = ['EnvelopeValidator', 'ValidatedGroup', 'ValidatedRecord', 'ValidationReport']
