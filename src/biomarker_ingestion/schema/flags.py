# ============================================================================
# src/biomarker_ingestion/schema/flags.py
# ============================================================================
"""
Abnormal-flag normalization.

Lab reports spell result flags many ways ("H", "elevated", "WNL"). Stored
values are restricted to the five AbnormalFlag members.
"""

from enum import Enum
from typing import Any, Dict, Tuple


class AbnormalFlag(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"
    CRITICAL_HIGH = "critical_high"
    CRITICAL_LOW = "critical_low"


FLAG_SYNONYMS: Dict[str, AbnormalFlag] = {
    "normal": AbnormalFlag.NORMAL,
    "within range": AbnormalFlag.NORMAL,
    "wnl": AbnormalFlag.NORMAL,
    "within normal limits": AbnormalFlag.NORMAL,

    "high": AbnormalFlag.HIGH,
    "elevated": AbnormalFlag.HIGH,
    "above range": AbnormalFlag.HIGH,
    "h": AbnormalFlag.HIGH,

    "low": AbnormalFlag.LOW,
    "below range": AbnormalFlag.LOW,
    "l": AbnormalFlag.LOW,

    "critical high": AbnormalFlag.CRITICAL_HIGH,
    "critically high": AbnormalFlag.CRITICAL_HIGH,
    "critical_high": AbnormalFlag.CRITICAL_HIGH,
    "ch": AbnormalFlag.CRITICAL_HIGH,

    "critical low": AbnormalFlag.CRITICAL_LOW,
    "critically low": AbnormalFlag.CRITICAL_LOW,
    "critical_low": AbnormalFlag.CRITICAL_LOW,
    "cl": AbnormalFlag.CRITICAL_LOW,
}


def lookup_flag(value: Any) -> Tuple[AbnormalFlag, bool]:
    """
    Map a raw flag through the synonym table.

    Returns (flag, recognized). Unrecognized input maps to NORMAL with
    recognized=False so the caller can apply its own default and warn.
    """
    if isinstance(value, AbnormalFlag):
        return value, True
    if not isinstance(value, str):
        return AbnormalFlag.NORMAL, False

    flag = FLAG_SYNONYMS.get(value.strip().lower())
    if flag is None:
        return AbnormalFlag.NORMAL, False
    return flag, True


def normalize_flag(value: Any, default: AbnormalFlag = AbnormalFlag.NORMAL) -> str:
    """Normalized flag value; unknown input becomes `default`."""
    flag, recognized = lookup_flag(value)
    return (flag if recognized else AbnormalFlag(default)).value
