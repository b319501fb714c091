# src/biomarker_ingestion/extractors/text_extractor.py
"""
Text extraction from uploaded document bytes.

Type detection: declared MIME type first, then file extension, then the
PDF magic bytes.

PDF extraction cascade (in order of preference):
1. pypdfium2: Fast, good Unicode support, best for modern PDFs
2. PyPDF2: Fallback, widely compatible
3. pdfplumber: Last resort for PDFs the other two cannot open

Other formats:
- DOCX: paragraphs and table rows (python-docx)
- TXT: UTF-8, undecodable bytes replaced
- CSV / XLSX / XLS: headers plus sample rows rendered as text (pandas)
"""

from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import PurePath
from typing import List, Optional, Tuple
import logging

import docx
import pandas as pd
import pdfplumber
import pypdfium2
import PyPDF2


class DocumentType(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"
    CSV = "csv"
    EXCEL = "excel"


MIME_TYPES = {
    "application/pdf": DocumentType.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentType.DOCX,
    "text/plain": DocumentType.TXT,
    "text/csv": DocumentType.CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": DocumentType.EXCEL,
    "application/vnd.ms-excel": DocumentType.EXCEL,
}

EXTENSIONS = {
    ".pdf": DocumentType.PDF,
    ".docx": DocumentType.DOCX,
    ".txt": DocumentType.TXT,
    ".csv": DocumentType.CSV,
    ".xlsx": DocumentType.EXCEL,
    ".xls": DocumentType.EXCEL,
}

# Sample rows rendered into the text summary
CSV_SAMPLE_ROWS = 10
EXCEL_SAMPLE_ROWS = 5


@dataclass
class TextExtractionResult:
    """Complete text extraction result with metadata."""
    text: str
    document_type: Optional[DocumentType] = None
    method: str = "unknown"
    page_count: int = 0
    truncated: bool = False
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors and bool(self.text)

    @property
    def char_count(self) -> int:
        return len(self.text)


class DocumentTextExtractor:
    """
    Extracts plain text from raw document bytes.

    extract() never raises for a bad document; problems are reported in
    TextExtractionResult.errors.
    """

    def __init__(
        self,
        max_file_size: Optional[int] = None,
        max_chars: Optional[int] = None
    ):
        from ..config import ingestion_settings

        self.max_file_size = max_file_size or ingestion_settings.MAX_FILE_SIZE_BYTES
        self.max_chars = max_chars or ingestion_settings.MAX_EXTRACTED_CHARS
        self.logger = logging.getLogger(__name__)

    def detect_type(
        self,
        data: bytes,
        mime_hint: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> Optional[DocumentType]:
        if mime_hint:
            mime = mime_hint.split(";")[0].strip().lower()
            if mime in MIME_TYPES:
                return MIME_TYPES[mime]

        if file_name:
            suffix = PurePath(file_name).suffix.lower()
            if suffix in EXTENSIONS:
                return EXTENSIONS[suffix]

        if data[:5] == b"%PDF-":
            return DocumentType.PDF
        return None

    def extract(
        self,
        data: bytes,
        mime_hint: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> TextExtractionResult:
        result = TextExtractionResult(text="")

        if not data:
            result.errors.append("Document is empty")
            return result

        if len(data) > self.max_file_size:
            result.errors.append(
                f"File too large: {len(data)} bytes (limit {self.max_file_size})"
            )
            return result

        doc_type = self.detect_type(data, mime_hint, file_name)
        if doc_type is None:
            result.errors.append(
                f"Unsupported file type (mime={mime_hint!r}, name={file_name!r})"
            )
            return result

        result.document_type = doc_type
        self.logger.debug(f"Extracting {doc_type.value} document ({len(data)} bytes)")

        try:
            if doc_type == DocumentType.PDF:
                self._extract_pdf(data, result)
            elif doc_type == DocumentType.DOCX:
                result.text, result.method = self._extract_docx(data), "python-docx"
            elif doc_type == DocumentType.TXT:
                result.text, result.method = data.decode("utf-8", errors="replace"), "utf-8"
            elif doc_type == DocumentType.CSV:
                result.text, result.method = self._extract_csv(data), "pandas-csv"
            elif doc_type == DocumentType.EXCEL:
                result.text, result.method = self._extract_excel(data), "pandas-excel"
        except Exception as e:
            self.logger.error(f"{doc_type.value} extraction failed: {e}")
            result.errors.append(f"{doc_type.value} extraction failed: {e}")
            return result

        if result.errors:
            return result

        result.text = result.text.strip()
        if not result.text:
            result.errors.append("No text could be extracted from the document")
            return result

        if len(result.text) > self.max_chars:
            result.warnings.append(
                f"Text truncated from {len(result.text)} to {self.max_chars} characters"
            )
            result.text = result.text[:self.max_chars]
            result.truncated = True

        return result

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------
    def _extract_pdf(self, data: bytes, result: TextExtractionResult) -> None:
        failures = []
        for method, extractor in (
            ("pypdfium2", self._extract_with_pypdfium2),
            ("pypdf2", self._extract_with_pypdf2),
            ("pdfplumber", self._extract_with_pdfplumber),
        ):
            try:
                text, page_count = extractor(data)
            except Exception as e:
                self.logger.warning(f"{method} failed: {e}")
                failures.append(f"{method}: {e}")
                continue

            result.text = text
            result.page_count = page_count
            result.method = method
            if failures:
                result.warnings.extend(f"{f} (fell back)" for f in failures)
            self.logger.debug(f"{method} extracted {len(text)} chars from {page_count} pages")
            return

        result.errors.append(f"All PDF extraction methods failed. {'; '.join(failures)}")

    def _extract_with_pypdfium2(self, data: bytes) -> Tuple[str, int]:
        pdf = pypdfium2.PdfDocument(data)
        try:
            pages = []
            for page_num in range(len(pdf)):
                textpage = pdf[page_num].get_textpage()
                pages.append((textpage.get_text_range() or "").strip())
            return "\n\n".join(pages), len(pages)
        finally:
            pdf.close()

    def _extract_with_pypdf2(self, data: bytes) -> Tuple[str, int]:
        reader = PyPDF2.PdfReader(BytesIO(data))
        if reader.is_encrypted:
            # Many "encrypted" PDFs only carry an empty owner password
            reader.decrypt("")

        pages = [(page.extract_text() or "") for page in reader.pages]
        return "\n\n".join(pages), len(pages)

    def _extract_with_pdfplumber(self, data: bytes) -> Tuple[str, int]:
        with pdfplumber.open(BytesIO(data)) as pdf:
            pages = [(page.extract_text() or "") for page in pdf.pages]
        return "\n\n".join(pages), len(pages)

    # ------------------------------------------------------------------
    # Office / tabular
    # ------------------------------------------------------------------
    def _extract_docx(self, data: bytes) -> str:
        document = docx.Document(BytesIO(data))
        parts = [p.text for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))

        return "\n".join(parts)

    def _extract_csv(self, data: bytes) -> str:
        df = pd.read_csv(BytesIO(data), dtype=str, keep_default_na=False)
        return "CSV Data Summary:\n\n" + _summarize_frame(df, CSV_SAMPLE_ROWS)

    def _extract_excel(self, data: bytes) -> str:
        sheets = pd.read_excel(BytesIO(data), sheet_name=None, dtype=str)
        lines = ["Excel File Summary:", "", f"Sheets: {', '.join(sheets)}", ""]
        for name, df in sheets.items():
            lines.append(f"=== Sheet: {name} ===")
            if df.empty and not len(df.columns):
                lines.append("No data found in this sheet")
            else:
                lines.append(_summarize_frame(df.fillna(""), EXCEL_SAMPLE_ROWS))
            lines.append("")
        return "\n".join(lines)


def _summarize_frame(df: pd.DataFrame, sample_rows: int) -> str:
    headers = [str(c) for c in df.columns]
    lines = [f"Headers: {', '.join(headers)}", "", "Sample Data:"]

    for index, row in enumerate(df.head(sample_rows).itertuples(index=False), start=1):
        cells = [f"{h}: {v if str(v).strip() else 'N/A'}" for h, v in zip(headers, row)]
        lines.append(f"Row {index}: {', '.join(cells)}")

    remaining = len(df) - sample_rows
    if remaining > 0:
        lines.append(f"... and {remaining} more rows")
    return "\n".join(lines)
