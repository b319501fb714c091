# ============================================================================
# src/biomarker_ingestion/utils/logging.py
# ============================================================================
"""
Logging configuration for the ingestion pipeline.

ProcessingLog entries are mirrored to the standard logger with `step`,
`status` and `run_id` attributes; JsonFormatter emits them as fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
TEXT_DATEFMT = '%Y-%m-%d %H:%M:%S'

# PDF parsers log every object they touch at DEBUG
NOISY_LOGGERS = ('pdfminer', 'pypdf', 'PyPDF2', 'asyncio')

_RECORD_EXTRAS = ('step', 'status', 'run_id')


def build_formatter(format_json: bool = False) -> logging.Formatter:
    if format_json:
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file that receives the same records as stdout
        format_json: Emit one JSON object per line instead of plain text
    """
    formatter = build_formatter(format_json)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_settings() -> None:
    """Configure logging from LOG_LEVEL / LOG_FORMAT_JSON / LOG_FILE."""
    from ..config import logging_settings

    setup_logging(
        level=logging_settings.LOG_LEVEL,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_FORMAT_JSON,
    )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, timestamps in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        for key in _RECORD_EXTRAS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)
