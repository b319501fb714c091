# ============================================================================
# src/biomarker_ingestion/storage/__init__.py
# ============================================================================
"""
Persistent record stores.
"""

from .base import OWNER_COLUMN, RecordFilter, RecordStore
from .sqlite_store import SQLiteRecordStore

__all__ = [
    'OWNER_COLUMN',
    'RecordFilter',
    'RecordStore',
    'SQLiteRecordStore',
]
