# ============================================================================
# src/biomarker_ingestion/schema/registry.py
# ============================================================================
"""
Schema Registry

Static description of every destination table plus the coercion that turns
raw model output into typed values. The registry is read-only after
construction and safe to share across concurrent runs.

Usage:
    from biomarker_ingestion.schema import get_registry

    registry = get_registry()
    schema = registry.resolve("LAB_RESULTS_2")     # -> lab_results
    value = registry.coerce("6.1", SemanticType.NUMERIC)
"""

import logging
import re
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .coercion import coerce
from .flags import AbnormalFlag, lookup_flag
from .tables import BUILTIN_TABLES
from .types import SemanticType, TableSchema

logger = logging.getLogger(__name__)

# Model keys look like LAB_RESULTS, LAB_RESULTS_2, heart-metrics
_SUFFIX = re.compile(r"_\d+$")


class SchemaRegistry:
    """Lookup and coercion over a fixed set of TableSchemas."""

    def __init__(
        self,
        tables: Optional[Iterable[TableSchema]] = None,
        unknown_flag_default: Optional[str] = None
    ):
        if unknown_flag_default is None:
            from ..config import ingestion_settings
            unknown_flag_default = ingestion_settings.UNKNOWN_FLAG_DEFAULT

        tables = list(BUILTIN_TABLES if tables is None else tables)
        by_name: Dict[str, TableSchema] = {}
        for table in tables:
            if table.name in by_name:
                raise ValueError(f"Duplicate table schema: {table.name}")
            by_name[table.name] = table

        self._tables: Mapping[str, TableSchema] = MappingProxyType(by_name)
        self.unknown_flag_default = AbnormalFlag(unknown_flag_default)

    @property
    def tables(self) -> Mapping[str, TableSchema]:
        return self._tables

    def extractable_tables(self) -> List[TableSchema]:
        """Tables the model is asked to fill."""
        return [t for t in self._tables.values() if t.extractable]

    @staticmethod
    def canonical_key(table_key: str) -> str:
        key = table_key.strip().lower().replace("-", "_").replace(" ", "_")
        return _SUFFIX.sub("", key)

    def resolve(self, table_key: str) -> Optional[TableSchema]:
        """TableSchema for a table key as the model writes it, or None."""
        if not isinstance(table_key, str):
            return None
        key = table_key.strip().lower()
        if key in self._tables:
            return self._tables[key]
        return self._tables.get(self.canonical_key(table_key))

    @staticmethod
    def coerce(value: Any, semantic_type: SemanticType) -> Any:
        return coerce(value, semantic_type)

    def normalize_flag(self, value: Any) -> str:
        flag, recognized = lookup_flag(value)
        return (flag if recognized else self.unknown_flag_default).value

    def coerce_field(self, schema: TableSchema, field_name: str, value: Any, log=None) -> Any:
        """
        Coerce one field of one record.

        Flag fields are normalized through the synonym table. An unknown
        flag falls back to the configured default and adds a warning entry
        to `log` when one is given.
        """
        typed = coerce(value, schema.type_of(field_name))
        if typed is None or field_name not in schema.flag_fields:
            return typed

        flag, recognized = lookup_flag(typed)
        if recognized:
            return flag.value

        fallback = self.unknown_flag_default.value
        message = (
            f"Unrecognized {field_name} value '{typed}' in {schema.name}; "
            f"defaulting to '{fallback}'"
        )
        if log is not None:
            from ..core.processing_log import PipelineStep
            log.warning(
                PipelineStep.SCHEMA_VALIDATION,
                message,
                {"table": schema.name, "field": field_name, "value": typed, "normalized": fallback},
            )
        else:
            logger.warning(message)
        return fallback

    def describe(self) -> str:
        """Field lists for every extractable table, in prompt form."""
        blocks = []
        for table in self.extractable_tables():
            lines = [f"{table.name.upper()} TABLE:"]
            for name in table.ordered_fields():
                requirement = "required" if table.is_required(name) else "optional"
                description = table.descriptions.get(name, "")
                suffix = f" - {description}" if description else ""
                lines.append(f"- {name} ({table.type_of(name).value}, {requirement}){suffix}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {name: table.to_dict() for name, table in self._tables.items()}


@lru_cache(maxsize=1)
def get_registry() -> SchemaRegistry:
    """Process-wide registry over the built-in tables."""
    return SchemaRegistry()
