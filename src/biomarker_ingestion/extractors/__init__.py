# ============================================================================
# src/biomarker_ingestion/extractors/__init__.py
# ============================================================================
"""
Document text extraction.
"""

from .text_extractor import DocumentTextExtractor, DocumentType, TextExtractionResult
from .adapter import TextExtractionAdapter

__all__ = [
    'DocumentTextExtractor',
    'DocumentType',
    'TextExtractionResult',
    'TextExtractionAdapter',
]
