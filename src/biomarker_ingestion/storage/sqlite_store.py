# ============================================================================
# src/biomarker_ingestion/storage/sqlite_store.py
# ============================================================================
"""
SQLite Record Store

One SQLite table per registry schema. Raw sqlite3 with a connection per
call; calls run on the event loop's default executor so the pipeline never
blocks on disk I/O.
"""

import asyncio
import functools
import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import OWNER_COLUMN, RecordFilter, RecordStore
from ..schema import SchemaRegistry, SemanticType, TableSchema, get_registry
from ..utils.exceptions import StoreError

logger = logging.getLogger(__name__)

_SQL_TYPES = {
    SemanticType.INTEGER: "INTEGER",
    SemanticType.NUMERIC: "REAL",
    SemanticType.BOOLEAN: "INTEGER",
    SemanticType.DATE: "TEXT",
    SemanticType.TIMESTAMP: "TEXT",
    SemanticType.TEXT: "TEXT",
    SemanticType.IDENTIFIER: "TEXT",
}

_SYSTEM_COLUMNS = ("id", OWNER_COLUMN, "created_at")


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed RecordStore.

    With unique_keys=True each table with a duplicate key also gets a
    unique index on (patient_id, key fields), so two concurrent runs cannot
    both insert the same natural key.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        registry: Optional[SchemaRegistry] = None,
        unique_keys: Optional[bool] = None
    ):
        from ..config import base_settings

        self.db_path = Path(db_path or base_settings.STORE_DB_PATH)
        self.registry = registry or get_registry()
        self.unique_keys = base_settings.STORE_UNIQUE_KEYS if unique_keys is None else unique_keys
        self._init_database()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            cur = conn.cursor()
            for schema in self.registry.tables.values():
                columns = [
                    "id INTEGER PRIMARY KEY AUTOINCREMENT",
                    f"{OWNER_COLUMN} TEXT NOT NULL",
                    "created_at TEXT NOT NULL",
                ]
                for name in schema.ordered_fields():
                    columns.append(f"{_quote(name)} {_SQL_TYPES[schema.type_of(name)]}")

                cur.execute(
                    f"CREATE TABLE IF NOT EXISTS {_quote(schema.name)} ({', '.join(columns)})"
                )
                cur.execute(
                    f"CREATE INDEX IF NOT EXISTS {_quote('idx_' + schema.name + '_patient')} "
                    f"ON {_quote(schema.name)} ({OWNER_COLUMN}, created_at)"
                )
                if self.unique_keys and schema.duplicate_key:
                    key_columns = ", ".join(_quote(c) for c in (OWNER_COLUMN,) + schema.duplicate_key)
                    cur.execute(
                        f"CREATE UNIQUE INDEX IF NOT EXISTS {_quote('ux_' + schema.name + '_key')} "
                        f"ON {_quote(schema.name)} ({key_columns})"
                    )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Record store initialized: {self.db_path}")

    def _schema(self, table: str) -> TableSchema:
        schema = self.registry.tables.get(table)
        if schema is None:
            raise StoreError(f"Unknown table: {table}", table=table)
        return schema

    def _check_columns(self, schema: TableSchema, columns) -> None:
        unknown = set(columns) - schema.all_fields - set(_SYSTEM_COLUMNS)
        if unknown:
            raise StoreError(
                f"Columns not in {schema.name}: {sorted(unknown)}", table=schema.name
            )

    # ------------------------------------------------------------------
    # Sync implementations (run in executor)
    # ------------------------------------------------------------------
    def _insert_sync(self, table: str, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        schema = self._schema(table)
        now = datetime.now(timezone.utc).isoformat()
        inserted = []

        conn = sqlite3.connect(str(self.db_path))
        try:
            with conn:
                for record in records:
                    row = {k: v for k, v in record.items() if k != "id"}
                    self._check_columns(schema, row)
                    if not row.get(OWNER_COLUMN):
                        raise StoreError(f"{table}: {OWNER_COLUMN} is required", table=table)
                    row.setdefault("created_at", now)

                    columns = list(row)
                    values = [self._to_db(schema, c, row[c]) for c in columns]
                    cur = conn.execute(
                        f"INSERT INTO {_quote(table)} ({', '.join(_quote(c) for c in columns)}) "
                        f"VALUES ({', '.join('?' for _ in columns)})",
                        values,
                    )
                    inserted.append({"id": cur.lastrowid, **row})
        except sqlite3.Error as e:
            raise StoreError(f"Insert into {table} failed: {e}", table=table) from e
        finally:
            conn.close()

        logger.debug(f"Inserted {len(inserted)} rows into {table}")
        return inserted

    def _where(self, schema: TableSchema, predicate: RecordFilter) -> Tuple[str, List[Any]]:
        self._check_columns(schema, predicate.equals)
        clauses, params = [], []
        for column, value in predicate.equals.items():
            if value is None:
                clauses.append(f"{_quote(column)} IS NULL")
            else:
                clauses.append(f"{_quote(column)} = ?")
                params.append(self._to_db(schema, column, value))
        if predicate.created_since is not None:
            since = predicate.created_since
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            clauses.append("created_at >= ?")
            params.append(since.astimezone(timezone.utc).isoformat())
        where = " AND ".join(clauses) if clauses else "1 = 1"
        return where, params

    def _select_sync(self, table: str, predicate: RecordFilter, limit: Optional[int]) -> List[Dict[str, Any]]:
        schema = self._schema(table)
        where, params = self._where(schema, predicate)
        sql = f"SELECT * FROM {_quote(table)} WHERE {where} ORDER BY id"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Select from {table} failed: {e}", table=table) from e
        finally:
            conn.close()

        return [self._from_db(schema, dict(r)) for r in rows]

    def _count_sync(self, table: str, predicate: RecordFilter) -> int:
        schema = self._schema(table)
        where, params = self._where(schema, predicate)

        conn = sqlite3.connect(str(self.db_path))
        try:
            (count,) = conn.execute(
                f"SELECT COUNT(*) FROM {_quote(table)} WHERE {where}", params
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Count on {table} failed: {e}", table=table) from e
        finally:
            conn.close()
        return count

    @staticmethod
    def _to_db(schema: TableSchema, column: str, value: Any) -> Any:
        if column in schema.all_fields and schema.type_of(column) == SemanticType.BOOLEAN and value is not None:
            return 1 if value else 0
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    @staticmethod
    def _from_db(schema: TableSchema, row: Dict[str, Any]) -> Dict[str, Any]:
        for column, value in row.items():
            if value is not None and column in schema.all_fields \
                    and schema.type_of(column) == SemanticType.BOOLEAN:
                row[column] = bool(value)
        return row

    # ------------------------------------------------------------------
    # Async interface
    # ------------------------------------------------------------------
    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def insert(self, table: str, records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not records:
            return []
        return await self._run(self._insert_sync, table, list(records))

    async def select(
        self,
        table: str,
        predicate: RecordFilter,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return await self._run(self._select_sync, table, predicate, limit)

    async def count(self, table: str, predicate: RecordFilter) -> int:
        return await self._run(self._count_sync, table, predicate)
