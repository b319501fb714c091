# ============================================================================
# src/biomarker_ingestion/schema/__init__.py
# ============================================================================
"""
Destination table schemas and type coercion.
"""

from .types import SemanticType, TableKind, TableSchema
from .coercion import coerce, parse_datetime
from .flags import AbnormalFlag, FLAG_SYNONYMS, lookup_flag, normalize_flag
from .tables import BUILTIN_TABLES, builtin_tables
from .registry import SchemaRegistry, get_registry

__all__ = [
    'SemanticType',
    'TableKind',
    'TableSchema',
    'coerce',
    'parse_datetime',
    'AbnormalFlag',
    'FLAG_SYNONYMS',
    'lookup_flag',
    'normalize_flag',
    'BUILTIN_TABLES',
    'builtin_tables',
    'SchemaRegistry',
    'get_registry',
]
