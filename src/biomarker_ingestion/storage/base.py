# ============================================================================
# src/biomarker_ingestion/storage/base.py
# ============================================================================
"""
Record Store Interface

The pipeline talks to persistence only through this interface. Every call
is a suspension point; backends raise StoreError on failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

# Column every table carries for the owning patient
OWNER_COLUMN = "patient_id"


@dataclass(frozen=True)
class RecordFilter:
    """Equality predicate on columns, optionally bounded by creation time."""
    equals: Mapping[str, Any] = field(default_factory=dict)
    created_since: Optional[datetime] = None

    def describe(self) -> str:
        parts = [f"{k} = {v!r}" for k, v in self.equals.items()]
        if self.created_since is not None:
            parts.append(f"created_at >= {self.created_since.isoformat()}")
        return " AND ".join(parts) or "TRUE"


class RecordStore(ABC):
    """Per-table insert, filtered select and count."""

    @abstractmethod
    async def insert(self, table: str, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Insert records into one table.

        All records of the call are written or none are. Returns the
        inserted rows including their generated ids.
        """
        pass

    @abstractmethod
    async def select(
        self,
        table: str,
        predicate: RecordFilter,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def count(self, table: str, predicate: RecordFilter) -> int:
        pass

    async def exists(self, table: str, predicate: RecordFilter) -> bool:
        rows = await self.select(table, predicate, limit=1)
        return bool(rows)

    async def close(self) -> None:
        """Release backend resources."""
        pass
