# ============================================================================
# src/biomarker_ingestion/core/persistence.py
# ============================================================================
"""
Persistence Orchestrator

Inserts validated records table by table. Tables are independent: a
failure in one is recorded against that table and the next table is still
attempted. There is no cross-table transaction.
"""

import logging
from typing import Dict, List, Mapping, Sequence

from .processing_log import PipelineStep, ProcessingLog
from .results import TableResult
from ..storage.base import OWNER_COLUMN, RecordStore
from ..utils.exceptions import PersistenceFailure
from ..validation.envelope_validator import ValidatedRecord

STEP = PipelineStep.DATABASE_MAPPING


class PersistenceOrchestrator:

    def __init__(self, store: RecordStore):
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def build_rows(records: Sequence[ValidatedRecord], patient_id: str) -> List[Dict]:
        return [{**record.to_row(), OWNER_COLUMN: patient_id} for record in records]

    async def persist(
        self,
        records_by_table: Mapping[str, Sequence[ValidatedRecord]],
        patient_id: str,
        log: ProcessingLog
    ) -> List[TableResult]:
        results: List[TableResult] = []

        for table, records in records_by_table.items():
            if not records:
                continue
            results.append(await self._persist_table(table, records, patient_id, log))

        inserted = sum(r.inserted_count for r in results)
        failed = [r.table for r in results if r.errors]
        if failed:
            log.warning(
                STEP,
                f"Inserted {inserted} record(s); {len(failed)} table(s) failed: {', '.join(failed)}",
                {"inserted": inserted, "failed_tables": failed},
            )
        else:
            log.success(STEP, f"Inserted {inserted} record(s) into {len(results)} table(s)", {"inserted": inserted})
        return results

    async def _persist_table(
        self,
        table: str,
        records: Sequence[ValidatedRecord],
        patient_id: str,
        log: ProcessingLog
    ) -> TableResult:
        result = TableResult(table=table)
        rows = self.build_rows(records, patient_id)
        columns = sorted({column for row in rows for column in row})

        log.processing(
            STEP,
            f"Inserting {len(rows)} record(s) into {table}",
            {
                "table": table,
                "sql": f"INSERT INTO {table} ({', '.join(columns)}) VALUES (...)",
                "records": rows,
            },
        )

        try:
            inserted = await self.store.insert(table, rows)
        except Exception as e:
            failure = PersistenceFailure(f"Insert into {table} failed: {e}", table=table)
            result.errors.append(str(failure))
            log.error(STEP, str(failure), {"table": table, "error": str(e), "records": len(rows)})
            return result

        result.inserted_count = len(inserted)
        log.success(
            STEP,
            f"Saved {result.inserted_count} record(s) to {table}",
            {"table": table, "ids": [row.get("id") for row in inserted]},
        )
        return result
