# ============================================================================
# src/biomarker_ingestion/extractors/adapter.py
# ============================================================================
"""
Text Extraction Adapter

Wraps DocumentTextExtractor for the pipeline: runs it off the event loop
under a timeout, mirrors progress into the processing log and reduces the
outcome to (text, error). No retries here; the caller decides whether to
fall back to directly supplied text.
"""

import asyncio
import functools
import logging
from typing import Optional, Tuple

from .text_extractor import DocumentTextExtractor
from ..core.processing_log import PipelineStep, ProcessingLog

STEP = PipelineStep.TEXT_EXTRACTION


class TextExtractionAdapter:

    def __init__(
        self,
        extractor: Optional[DocumentTextExtractor] = None,
        timeout: Optional[float] = None
    ):
        from ..config import ingestion_settings

        self.extractor = extractor or DocumentTextExtractor()
        self.timeout = timeout or ingestion_settings.EXTRACTION_TIMEOUT
        self.logger = logging.getLogger(self.__class__.__name__)

    async def extract(
        self,
        data: bytes,
        log: ProcessingLog,
        mime_hint: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[str]]:
        """Returns (text, None) on success, (None, error) on failure."""
        log.processing(
            STEP,
            f"Extracting text from {file_name or 'document'}...",
            {"file_name": file_name, "mime_type": mime_hint, "size_bytes": len(data)},
        )

        loop = asyncio.get_running_loop()
        call = functools.partial(self.extractor.extract, data, mime_hint, file_name)
        try:
            result = await asyncio.wait_for(loop.run_in_executor(None, call), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = f"Text extraction timed out after {self.timeout}s"
            log.error(STEP, error, {"file_name": file_name})
            return None, error

        for warning in result.warnings:
            log.warning(STEP, warning, {"file_name": file_name})

        if result.errors:
            error = result.errors[0]
            log.error(STEP, f"Text extraction failed: {error}", {"errors": result.errors})
            return None, error

        log.success(
            STEP,
            f"Extracted {result.char_count} characters using {result.method}",
            {
                "characters": result.char_count,
                "method": result.method,
                "document_type": result.document_type.value if result.document_type else None,
                "pages": result.page_count,
                "truncated": result.truncated,
            },
        )
        return result.text, None
