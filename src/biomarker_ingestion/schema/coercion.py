# ============================================================================
# src/biomarker_ingestion/schema/coercion.py
# ============================================================================
"""
Type coercion for raw model output.

coerce() never raises on bad input: anything that cannot be read as the
requested type comes back as None. Coercing an already-coerced value
returns it unchanged.

Dates come back as 'YYYY-MM-DD' strings and timestamps as UTC ISO-8601
strings, which is also how the record store keeps them.
"""

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

from .types import SemanticType

# Leading number, the way a lenient parser reads "6.1 %" or "140 mg/dL"
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_THOUSANDS = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")

_TRUE_STRINGS = {"true", "1"}

_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def coerce(value: Any, semantic_type: SemanticType) -> Any:
    """Coerce a raw value to the given semantic type, or None."""
    if value is None:
        return None

    semantic_type = SemanticType(semantic_type)

    if semantic_type == SemanticType.INTEGER:
        return to_integer(value)
    if semantic_type == SemanticType.NUMERIC:
        return to_numeric(value)
    if semantic_type == SemanticType.BOOLEAN:
        return to_boolean(value)
    if semantic_type == SemanticType.DATE:
        parsed = parse_datetime(value)
        return parsed.date().isoformat() if parsed else None
    if semantic_type == SemanticType.TIMESTAMP:
        parsed = parse_datetime(value)
        return parsed.isoformat() if parsed else None
    if semantic_type == SemanticType.IDENTIFIER:
        text = to_text(value)
        return text.strip() if text is not None else None
    return to_text(value)


def to_integer(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _INT_PREFIX.match(_THOUSANDS.sub("", value))
        return int(match.group(1)) if match else None
    return None


def to_numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER_PREFIX.match(_THOUSANDS.sub("", value))
        if not match:
            return None
        number = float(match.group(1))
    else:
        return None
    return number if math.isfinite(number) else None


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def to_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date or timestamp into an aware UTC datetime.

    Naive values are read as UTC. Returns None for anything that is not a
    valid calendar date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = _parse_string(value.strip())
    else:
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_string(text: str) -> Optional[datetime]:
    if not text:
        return None

    iso = text[:-1] + "+00:00" if text[-1] in "Zz" else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None
