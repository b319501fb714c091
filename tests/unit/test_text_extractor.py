# ============================================================================
# FILE: tests/unit/test_text_extractor.py
# ============================================================================
"""
Tests for document text extraction and the pipeline adapter
"""

import asyncio
import time
from io import BytesIO

import docx
import pandas as pd
import pytest

from biomarker_ingestion.core.processing_log import LogStatus, ProcessingLog
from biomarker_ingestion.extractors import (
    DocumentTextExtractor,
    DocumentType,
    TextExtractionAdapter,
    TextExtractionResult,
)


def _docx_bytes() -> bytes:
    document = docx.Document()
    document.add_paragraph("Lipid Panel")
    document.add_paragraph("Collected 2024-01-15")
    table = document.add_table(rows=2, cols=3)
    for cell, text in zip(table.rows[0].cells, ["Test", "Result", "Unit"]):
        cell.text = text
    for cell, text in zip(table.rows[1].cells, ["LDL", "130", "mg/dL"]):
        cell.text = text
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestTypeDetection:
    """Test file type detection"""

    def test_mime_hint_wins(self):
        extractor = DocumentTextExtractor()
        assert extractor.detect_type(b"a,b", "text/csv", "report.txt") == DocumentType.CSV

    def test_mime_parameters_ignored(self):
        extractor = DocumentTextExtractor()
        assert extractor.detect_type(b"x", "text/plain; charset=utf-8") == DocumentType.TXT

    def test_extension_fallback(self):
        extractor = DocumentTextExtractor()
        assert extractor.detect_type(b"x", None, "Export.XLSX") == DocumentType.EXCEL
        assert extractor.detect_type(b"x", "application/octet-stream", "notes.docx") == DocumentType.DOCX

    def test_pdf_magic_bytes(self):
        extractor = DocumentTextExtractor()
        assert extractor.detect_type(b"%PDF-1.7 ...", None, None) == DocumentType.PDF

    def test_unknown(self):
        extractor = DocumentTextExtractor()
        assert extractor.detect_type(b"\x00\x01", "image/png", "scan.png") is None


class TestDocumentTextExtractor:
    """Test extraction per format"""

    def test_plain_text(self):
        result = DocumentTextExtractor().extract(b"Hemoglobin 14.2 g/dL\n", "text/plain")

        assert result.success
        assert result.text == "Hemoglobin 14.2 g/dL"
        assert result.method == "utf-8"

    def test_invalid_utf8_is_replaced(self):
        result = DocumentTextExtractor().extract(b"Glucose \xff 98", None, "notes.txt")
        assert result.success
        assert "\ufffd" in result.text

    def test_docx_paragraphs_and_tables(self):
        result = DocumentTextExtractor().extract(_docx_bytes(), None, "panel.docx")

        assert result.success
        assert "Lipid Panel" in result.text
        assert "LDL | 130 | mg/dL" in result.text
        assert result.document_type == DocumentType.DOCX

    def test_csv_summary(self):
        rows = "\n".join(f"2024-01-{d:02d},{7000 + d}" for d in range(1, 13))
        data = f"date,steps\n{rows}\n".encode()

        result = DocumentTextExtractor().extract(data, "text/csv")

        assert result.text.startswith("CSV Data Summary:")
        assert "Headers: date, steps" in result.text
        assert "Row 1: date: 2024-01-01, steps: 7001" in result.text
        assert "... and 2 more rows" in result.text

    def test_excel_summary(self):
        buffer = BytesIO()
        pd.DataFrame({"date": ["2024-01-15"], "resting_hr": ["58"]}).to_excel(buffer, index=False)

        result = DocumentTextExtractor().extract(buffer.getvalue(), None, "wearable.xlsx")

        assert result.success
        assert result.text.startswith("Excel File Summary:")
        assert "=== Sheet: Sheet1 ===" in result.text
        assert "resting_hr: 58" in result.text

    def test_empty_document(self):
        result = DocumentTextExtractor().extract(b"", "text/plain")
        assert not result.success
        assert result.errors == ["Document is empty"]

    def test_whitespace_only_document(self):
        result = DocumentTextExtractor().extract(b"   \n\t  ", "text/plain")
        assert not result.success
        assert "No text" in result.errors[0]

    def test_file_too_large(self):
        result = DocumentTextExtractor(max_file_size=10).extract(b"x" * 11, "text/plain")
        assert not result.success
        assert "too large" in result.errors[0]

    def test_unsupported_type(self):
        result = DocumentTextExtractor().extract(b"\x89PNG", "image/png", "scan.png")
        assert not result.success
        assert "Unsupported" in result.errors[0]

    def test_corrupt_docx_reports_error(self):
        result = DocumentTextExtractor().extract(b"not a zip file", None, "broken.docx")
        assert not result.success
        assert result.errors[0].startswith("docx extraction failed")

    def test_corrupt_pdf_reports_error(self):
        result = DocumentTextExtractor().extract(b"%PDF-1.4 garbage", "application/pdf")
        assert not result.success
        assert "All PDF extraction methods failed" in result.errors[0]

    def test_truncation(self):
        result = DocumentTextExtractor(max_chars=10).extract(b"abcdefghijklmnop", "text/plain")

        assert result.success
        assert result.text == "abcdefghij"
        assert result.truncated
        assert "truncated" in result.warnings[0]


class TestTextExtractionAdapter:
    """Test the (text, error) adapter"""

    @pytest.mark.asyncio
    async def test_success(self):
        log = ProcessingLog()
        text, error = await TextExtractionAdapter().extract(b"Sodium 140 mmol/L", log, "text/plain")

        assert text == "Sodium 140 mmol/L"
        assert error is None
        success = log.filter(status=LogStatus.SUCCESS)
        assert success[0].data["characters"] == len(text)

    @pytest.mark.asyncio
    async def test_failure(self):
        log = ProcessingLog()
        text, error = await TextExtractionAdapter().extract(b"", log, "text/plain")

        assert text is None
        assert error == "Document is empty"
        assert len(log.filter(status=LogStatus.ERROR)) == 1

    @pytest.mark.asyncio
    async def test_truncation_warning_logged(self):
        log = ProcessingLog()
        adapter = TextExtractionAdapter(extractor=DocumentTextExtractor(max_chars=5))

        text, error = await adapter.extract(b"0123456789", log, "text/plain")

        assert text == "01234"
        assert len(log.filter(status=LogStatus.WARNING)) == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        class SlowExtractor(DocumentTextExtractor):
            def extract(self, data, mime_hint=None, file_name=None):
                time.sleep(0.5)
                return TextExtractionResult(text="late")

        log = ProcessingLog()
        adapter = TextExtractionAdapter(extractor=SlowExtractor(), timeout=0.05)

        text, error = await adapter.extract(b"data", log, "text/plain")

        assert text is None
        assert "timed out" in error
        # let the worker thread finish before the loop closes
        await asyncio.sleep(0.6)
