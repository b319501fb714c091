# ============================================================================
# src/biomarker_ingestion/llm/envelope.py
# ============================================================================
"""
Extraction envelope: the model's structured answer for one document.

The raw JSON is untrusted. normalize_envelope() turns it into a frozen
ExtractionEnvelope, applying defaults and dropping group entries that are
not JSON objects.
"""

import math
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..utils.exceptions import ResponseParseFailure

DEFAULT_DOCUMENT_TYPE = "other"
DEFAULT_CONFIDENCE = 0.5

FieldMap = Dict[str, Any]


class ExtractionEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    document_type: str = Field(default=DEFAULT_DOCUMENT_TYPE, alias="documentType")
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    extracted_field_groups: Dict[str, List[FieldMap]] = Field(
        default_factory=dict, alias="extractedFieldGroups"
    )
    recommendations: List[str] = Field(default_factory=list)

    @property
    def candidate_count(self) -> int:
        return sum(len(records) for records in self.extracted_field_groups.values())


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except ValueError:
        return DEFAULT_CONFIDENCE
    if not math.isfinite(number):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, number))


def normalize_envelope(raw: Any, max_recommendations: int = 10) -> Tuple[ExtractionEnvelope, List[str]]:
    """
    Build an ExtractionEnvelope from parsed model JSON.

    Returns the envelope and a list of warnings for anything dropped.
    Raises ResponseParseFailure if `raw` is not a JSON object.
    """
    if not isinstance(raw, dict):
        raise ResponseParseFailure(
            f"Expected a JSON object envelope, got {type(raw).__name__}"
        )

    warnings: List[str] = []

    document_type = raw.get("documentType")
    if not isinstance(document_type, str) or not document_type.strip():
        document_type = DEFAULT_DOCUMENT_TYPE

    groups_raw = raw.get("extractedFields", raw.get("extractedFieldGroups"))
    if groups_raw is None:
        groups_raw = {}
    elif not isinstance(groups_raw, dict):
        warnings.append(
            f"extractedFields is a {type(groups_raw).__name__}, not an object; ignored"
        )
        groups_raw = {}

    groups: Dict[str, List[FieldMap]] = {}
    for key, value in groups_raw.items():
        if isinstance(value, dict):
            groups[key] = [value]
        elif isinstance(value, list):
            records = [item for item in value if isinstance(item, dict)]
            dropped = len(value) - len(records)
            if dropped:
                warnings.append(f"{key}: dropped {dropped} entries that are not objects")
            groups[key] = records
        else:
            warnings.append(f"{key}: expected an object or list of objects; group dropped")

    recommendations = raw.get("recommendations")
    if isinstance(recommendations, list):
        recommendations = [r for r in recommendations if isinstance(r, str)][:max_recommendations]
    else:
        recommendations = []

    envelope = ExtractionEnvelope(
        document_type=document_type.strip(),
        confidence=_confidence(raw.get("confidence")),
        extracted_field_groups=groups,
        recommendations=recommendations,
    )
    return envelope, warnings
