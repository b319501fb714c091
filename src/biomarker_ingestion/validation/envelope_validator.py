# ============================================================================
# src/biomarker_ingestion/validation/envelope_validator.py
# ============================================================================
"""
Envelope Validator

Checks every candidate record in an ExtractionEnvelope against its table
schema. The schema is a strict allow-list:

- unknown table         -> error entry, whole group rejected
- unknown field         -> dropped, one warning entry per field
- missing required      -> record discarded, one error entry per record
- required not coercible-> record discarded, error entry
- optional not coercible-> field omitted, warning entry

Error messages are also kept on the group (or, for rejected tables, on the
ValidationReport) so the run result can count them per table.

Record-level provenance (_confidence, _validationFlags) is kept on the
ValidatedRecord for reporting and never reaches the row written to the
store.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.processing_log import PipelineStep, ProcessingLog
from ..llm.envelope import ExtractionEnvelope
from ..schema import SchemaRegistry, TableSchema, get_registry
from ..schema.coercion import to_numeric
from ..utils.exceptions import SchemaValidationWarning

STEP = PipelineStep.SCHEMA_VALIDATION

CONFIDENCE_KEY = "_confidence"
VALIDATION_FLAG_KEYS = ("_validationFlags", "_validation_flags")


@dataclass
class ValidatedRecord:
    """A candidate record that passed its table schema."""
    table: str
    fields: Dict[str, Any]
    source_key: str
    confidence: Optional[float] = None
    validation_flags: List[str] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        """Persistable columns only; provenance is stripped."""
        return dict(self.fields)


@dataclass
class ValidatedGroup:
    """All validated records for one destination table."""
    table_key: str
    schema: TableSchema
    source_keys: List[str] = field(default_factory=list)
    records: List[ValidatedRecord] = field(default_factory=list)
    dropped_field_warnings: List[SchemaValidationWarning] = field(default_factory=list)
    discarded: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def warning_messages(self) -> List[str]:
        return [str(w) for w in self.dropped_field_warnings]


@dataclass
class ValidationReport:
    """Validated groups plus the errors of groups whose table was rejected."""
    groups: List[ValidatedGroup] = field(default_factory=list)
    rejected: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def discarded(self) -> int:
        return sum(g.discarded for g in self.groups)


class EnvelopeValidator:

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self.registry = registry or get_registry()
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate(self, envelope: ExtractionEnvelope, log: ProcessingLog) -> List[ValidatedGroup]:
        """Validated groups, one per resolved table, in first-seen order."""
        return self.validate_envelope(envelope, log).groups

    def validate_envelope(self, envelope: ExtractionEnvelope, log: ProcessingLog) -> ValidationReport:
        groups: Dict[str, ValidatedGroup] = {}
        rejected: Dict[str, List[str]] = {}

        for table_key, field_maps in envelope.extracted_field_groups.items():
            schema = self.registry.resolve(table_key)
            if schema is None or not schema.extractable:
                message = f"Unknown table '{table_key}'; skipping {len(field_maps)} record(s)"
                rejected.setdefault(table_key, []).append(message)
                log.error(STEP, message, {"table_key": table_key})
                continue

            group = groups.get(schema.name)
            if group is None:
                group = groups[schema.name] = ValidatedGroup(table_key=schema.name, schema=schema)
            group.source_keys.append(table_key)

            for field_map in field_maps:
                record = self.validate_record(schema, field_map, table_key, log, group)
                if record is not None:
                    group.records.append(record)

        for group in groups.values():
            log.info(
                STEP,
                f"{group.table_key}: {len(group.records)} valid, {group.discarded} discarded, "
                f"{len(group.dropped_field_warnings)} field(s) dropped",
                {"table": group.table_key, "valid": len(group.records), "discarded": group.discarded},
            )

        return ValidationReport(groups=list(groups.values()), rejected=rejected)

    def validate_record(
        self,
        schema: TableSchema,
        field_map: Dict[str, Any],
        source_key: str,
        log: ProcessingLog,
        group: Optional[ValidatedGroup] = None
    ) -> Optional[ValidatedRecord]:
        """Validate one candidate; None if it was discarded."""
        group = group if group is not None else ValidatedGroup(table_key=schema.name, schema=schema)
        raw = dict(field_map)

        confidence = to_numeric(raw.pop(CONFIDENCE_KEY, None))
        if confidence is not None:
            confidence = min(1.0, max(0.0, confidence))
        flags: List[str] = []
        for key in VALIDATION_FLAG_KEYS:
            value = raw.pop(key, None)
            if isinstance(value, list):
                flags.extend(str(v) for v in value)
            elif value is not None:
                flags.append(str(value))

        for name in [n for n in raw if n not in schema.all_fields]:
            value = raw.pop(name)
            warning = SchemaValidationWarning(
                f"Ignoring field '{name}' - not in schema for {schema.name}",
                table=schema.name,
                field=name,
            )
            group.dropped_field_warnings.append(warning)
            log.warning(STEP, str(warning), {"table": schema.name, "field": name, "value": value})

        missing = [n for n in schema.ordered_fields() if schema.is_required(n) and raw.get(n) is None]
        if missing:
            message = f"Discarding {source_key} record - missing required field(s): {', '.join(missing)}"
            group.discarded += 1
            group.errors.append(message)
            log.error(STEP, message, {"table": schema.name, "missing": missing})
            return None

        fields: Dict[str, Any] = {}
        for name in schema.ordered_fields():
            if name not in raw or raw[name] is None:
                continue

            typed = self.registry.coerce_field(schema, name, raw[name], log)
            if typed is not None:
                fields[name] = typed
                continue

            semantic = schema.type_of(name).value
            if schema.is_required(name):
                message = (
                    f"Discarding {source_key} record - required field '{name}' "
                    f"is not a valid {semantic}: {raw[name]!r}"
                )
                group.discarded += 1
                group.errors.append(message)
                log.error(STEP, message, {"table": schema.name, "field": name, "value": raw[name]})
                return None

            warning = SchemaValidationWarning(
                f"Omitting field '{name}' in {schema.name} - not a valid {semantic}: {raw[name]!r}",
                table=schema.name,
                field=name,
            )
            group.dropped_field_warnings.append(warning)
            log.warning(STEP, str(warning), {"table": schema.name, "field": name, "value": raw[name]})

        return ValidatedRecord(
            table=schema.name,
            fields=fields,
            source_key=source_key,
            confidence=confidence,
            validation_flags=flags,
        )
