# ============================================================================
# src/biomarker_ingestion/schema/types.py
# ============================================================================
"""
Schema data types: semantic field types, table kinds and TableSchema.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Tuple


class SemanticType(str, Enum):
    INTEGER = "integer"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    TEXT = "text"
    IDENTIFIER = "identifier"


class TableKind(str, Enum):
    """Decides which duplicate heuristic applies to a table."""
    DOCUMENT_LOG = "document_log"
    CLINICAL_TEST = "clinical_test"
    CLINICAL_RECORD = "clinical_record"
    BIOMARKER = "biomarker"


@dataclass(frozen=True)
class TableSchema:
    """
    Immutable description of one destination table.

    `duplicate_key` lists the record fields that, together with the patient,
    identify an existing row. `flag_fields` are text fields normalized
    through the abnormal-flag synonym table.
    """
    name: str
    required_fields: FrozenSet[str]
    optional_fields: FrozenSet[str]
    field_types: Mapping[str, SemanticType]
    kind: TableKind = TableKind.BIOMARKER
    duplicate_key: Tuple[str, ...] = ()
    flag_fields: FrozenSet[str] = frozenset()
    descriptions: Mapping[str, str] = field(default_factory=dict)
    extractable: bool = True

    def __post_init__(self):
        overlap = self.required_fields & self.optional_fields
        if overlap:
            raise ValueError(f"{self.name}: fields both required and optional: {sorted(overlap)}")

        untyped = self.all_fields - set(self.field_types)
        if untyped:
            raise ValueError(f"{self.name}: fields without a type: {sorted(untyped)}")

        stray = set(self.field_types) - self.all_fields
        if stray:
            raise ValueError(f"{self.name}: typed fields not in schema: {sorted(stray)}")

        unknown_key = set(self.duplicate_key) - self.all_fields
        if unknown_key:
            raise ValueError(f"{self.name}: duplicate key uses unknown fields: {sorted(unknown_key)}")

        if not self.flag_fields <= self.all_fields:
            raise ValueError(f"{self.name}: flag fields not in schema")

    @property
    def all_fields(self) -> FrozenSet[str]:
        return self.required_fields | self.optional_fields

    def is_required(self, field_name: str) -> bool:
        return field_name in self.required_fields

    def type_of(self, field_name: str) -> SemanticType:
        return self.field_types[field_name]

    def ordered_fields(self) -> Tuple[str, ...]:
        """Required fields first, then optional, each in declaration order."""
        names = list(self.field_types)
        return tuple(
            [n for n in names if n in self.required_fields]
            + [n for n in names if n in self.optional_fields]
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "required": [f for f in self.ordered_fields() if f in self.required_fields],
            "optional": [f for f in self.ordered_fields() if f in self.optional_fields],
            "types": {f: self.field_types[f].value for f in self.ordered_fields()},
            "duplicate_key": list(self.duplicate_key),
        }
