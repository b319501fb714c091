# ============================================================================
# FILE: tests/unit/test_sqlite_store.py
# ============================================================================
"""
Tests for the SQLite record store
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from biomarker_ingestion.storage import RecordFilter, SQLiteRecordStore
from biomarker_ingestion.utils.exceptions import StoreError


class TestSQLiteRecordStore:
    """Test SQLiteRecordStore operations"""

    def test_creates_one_table_per_schema(self, store, registry):
        conn = sqlite3.connect(str(store.db_path))
        try:
            names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        finally:
            conn.close()
        assert set(registry.tables) <= names

    @pytest.mark.asyncio
    async def test_insert_returns_ids(self, store):
        rows = await store.insert("lab_results", [
            {"patient_id": "p1", "result_name": "LDL", "numeric_value": 130.0},
            {"patient_id": "p1", "result_name": "HDL", "numeric_value": 55.0},
        ])

        assert [r["result_name"] for r in rows] == ["LDL", "HDL"]
        assert rows[0]["id"] < rows[1]["id"]
        assert rows[0]["created_at"]

    @pytest.mark.asyncio
    async def test_select_and_count(self, store):
        await store.insert("lab_results", [
            {"patient_id": "p1", "result_name": "LDL"},
            {"patient_id": "p1", "result_name": "HDL"},
            {"patient_id": "p2", "result_name": "LDL"},
        ])

        p1 = RecordFilter(equals={"patient_id": "p1"})
        assert await store.count("lab_results", p1) == 2
        rows = await store.select("lab_results", RecordFilter(equals={"patient_id": "p1", "result_name": "LDL"}))
        assert len(rows) == 1
        assert rows[0]["unit"] is None
        assert len(await store.select("lab_results", p1, limit=1)) == 1

    @pytest.mark.asyncio
    async def test_exists(self, store):
        await store.insert("allergies", [{"patient_id": "p1", "allergen": "penicillin", "reaction": "rash"}])

        assert await store.exists("allergies", RecordFilter(equals={"patient_id": "p1", "allergen": "penicillin"}))
        assert not await store.exists("allergies", RecordFilter(equals={"patient_id": "p1", "allergen": "latex"}))

    @pytest.mark.asyncio
    async def test_none_matches_null(self, store):
        await store.insert("lab_results", [{"patient_id": "p1", "result_name": "LDL"}])

        predicate = RecordFilter(equals={"patient_id": "p1", "measurement_timestamp": None})
        assert await store.count("lab_results", predicate) == 1

    @pytest.mark.asyncio
    async def test_created_since(self, store):
        old = (datetime.now(timezone.utc) - timedelta(days=3)).isoformat()
        await store.insert("lab_results", [
            {"patient_id": "p1", "result_name": "LDL", "created_at": old},
            {"patient_id": "p1", "result_name": "LDL"},
        ])

        since = datetime.now(timezone.utc) - timedelta(hours=24)
        predicate = RecordFilter(equals={"patient_id": "p1"}, created_since=since)
        assert await store.count("lab_results", predicate) == 1

    @pytest.mark.asyncio
    async def test_insert_is_atomic_per_call(self, store):
        with pytest.raises(StoreError):
            await store.insert("lab_results", [
                {"patient_id": "p1", "result_name": "LDL"},
                {"patient_id": "p1", "result_name": "HDL", "not_a_column": 1},
            ])

        assert await store.count("lab_results", RecordFilter(equals={"patient_id": "p1"})) == 0

    @pytest.mark.asyncio
    async def test_patient_id_required(self, store):
        with pytest.raises(StoreError):
            await store.insert("lab_results", [{"result_name": "LDL"}])

    @pytest.mark.asyncio
    async def test_unknown_table(self, store):
        with pytest.raises(StoreError):
            await store.insert("patients", [{"patient_id": "p1"}])
        with pytest.raises(StoreError):
            await store.select("patients", RecordFilter())

    @pytest.mark.asyncio
    async def test_boolean_round_trip(self, store):
        await store.insert("allergies", [
            {"patient_id": "p1", "allergen": "penicillin", "reaction": "rash", "active": True},
            {"patient_id": "p1", "allergen": "latex", "reaction": "hives", "active": False},
        ])

        rows = await store.select("allergies", RecordFilter(equals={"patient_id": "p1"}))
        assert [r["active"] for r in rows] == [True, False]
        active = await store.count("allergies", RecordFilter(equals={"patient_id": "p1", "active": True}))
        assert active == 1

    @pytest.mark.asyncio
    async def test_unique_keys_backstop(self, tmp_path, registry):
        store = SQLiteRecordStore(db_path=tmp_path / "unique.db", registry=registry, unique_keys=True)
        row = {"patient_id": "p1", "device_type": "manual", "measurement_timestamp": "2024-01-15T09:00:00+00:00"}

        await store.insert("heart_metrics", [row])
        with pytest.raises(StoreError):
            await store.insert("heart_metrics", [dict(row)])
