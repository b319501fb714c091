# ============================================================================
# src/biomarker_ingestion/config/ingestion_config.py
# ============================================================================
"""
Ingestion Settings
- Text extraction limits
- Duplicate detection policy
- Flag normalization default
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

class IngestionSettings(BaseSettings):
    MAX_FILE_SIZE_BYTES: int = Field(
        default=50 * 1024 * 1024,
        description="Largest accepted upload (bytes)"
    )
    MAX_EXTRACTED_CHARS: int = Field(
        default=50_000,
        description="Extracted text is truncated to this many characters"
    )
    EXTRACTION_TIMEOUT: float = Field(
        default=30.0,
        description="Maximum time for text extraction (seconds)"
    )
    FINGERPRINT_PREFIX_CHARS: int = Field(
        default=500,
        description="Characters of extracted text used for the document fingerprint"
    )
    LAB_DUPLICATE_LOOKBACK_HOURS: int = Field(
        default=24,
        description="Lookback window for lab results that carry no measurement timestamp"
    )
    ON_DUPLICATE_CHECK_ERROR: Literal["proceedAsUnique", "treatAsDuplicate"] = Field(
        default="proceedAsUnique",
        description="What a store error during the duplicate check means for the record"
    )
    RECORD_DOCUMENT_LOG: bool = Field(
        default=True,
        description="Write a document_processing_logs row after each completed run"
    )
    UNKNOWN_FLAG_DEFAULT: Literal["normal", "high", "low", "critical_high", "critical_low"] = Field(
        default="normal",
        description="Value used when an abnormal flag is not in the synonym table"
    )

ingestion_settings = IngestionSettings()
