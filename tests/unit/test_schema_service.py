"""Tests for schema context loading, caching and demo fallback."""

import asyncio

from datachat.database.schema_service import DEMO_SCHEMA, SchemaService, format_schema
from datachat.exceptions import DatabaseQueryError, DatabaseUnavailable
from datachat.models.domain import QueryRows

COLUMNS = [
    {
        "table_schema": "SDA",
        "table_name": "m_ticket",
        "column_name": "no_ticket",
        "data_type": "text",
        "is_nullable": "NO",
        "column_default": None,
        "column_comment": "Tiket pekerjaan",
        "constraint_type": "PRIMARY KEY",
    },
    {
        "table_schema": "SDA",
        "table_name": "m_ticket",
        "column_name": "status",
        "data_type": "text",
        "is_nullable": "YES",
        "column_default": "'open'::text",
        "column_comment": None,
        "constraint_type": None,
    },
    {
        "table_schema": "SDA",
        "table_name": "m_ticket",
        "column_name": "developer_id",
        "data_type": "integer",
        "is_nullable": "YES",
        "column_default": None,
        "column_comment": None,
        "constraint_type": "FOREIGN KEY",
        "foreign_table_schema": "public",
        "foreign_table_name": "users",
        "foreign_column_name": "id",
    },
]


class CatalogDatabase:
    def __init__(self, fail_metadata=False, fail_samples=False):
        self.fail_metadata = fail_metadata
        self.fail_samples = fail_samples
        self.calls: list[tuple[str, dict | None]] = []

    async def query(self, sql, params=None):
        self.calls.append((sql, params))
        if "information_schema" in sql:
            if self.fail_metadata:
                raise DatabaseUnavailable("connection refused")
            return QueryRows(rows=COLUMNS, row_count=len(COLUMNS))
        if self.fail_samples:
            raise DatabaseQueryError("permission denied")
        return QueryRows(rows=[{"no_ticket": "T-1", "status": "closed"}], row_count=1)


def test_format_schema():
    text = format_schema(COLUMNS)
    assert 'TABEL: "SDA"."m_ticket"' in text
    assert "Deskripsi: Tiket pekerjaan" in text
    assert "no_ticket:text (PRIMARY KEY) [NOT NULL]" in text
    assert "status:text DEFAULT 'open'::text" in text
    assert 'developer_id:integer → "public"."users"."id"' in text


async def test_schema_context_with_samples_is_cached():
    db = CatalogDatabase()
    service = SchemaService(db, schemas=["public", "SDA"], sample_tables=["SDA.m_ticket"])
    first = await service.get_schema_context()
    assert not first.degraded
    assert "CONTOH DATA:" in first.value
    assert '"no_ticket": "T-1"' in first.value
    assert db.calls[0][1] == {"schemas": ["public", "SDA"]}
    assert db.calls[1][0] == 'SELECT * FROM "SDA"."m_ticket" LIMIT :limit'

    calls = len(db.calls)
    second = await service.get_schema_context()
    assert second.value == first.value
    assert len(db.calls) == calls


async def test_clear_cache_refetches():
    db = CatalogDatabase()
    service = SchemaService(db, schemas=["SDA"])
    await service.get_schema_context()
    service.clear_cache()
    await service.get_schema_context()
    assert len(db.calls) == 2


async def test_sample_failures_are_skipped():
    service = SchemaService(CatalogDatabase(fail_samples=True), schemas=["SDA"], sample_tables=["m_ticket"])
    outcome = await service.get_schema_context()
    assert not outcome.degraded
    assert "CONTOH DATA:" not in outcome.value


async def test_metadata_failure_falls_back_to_demo_schema():
    service = SchemaService(CatalogDatabase(fail_metadata=True), schemas=["SDA"])
    outcome = await service.get_schema_context()
    assert outcome.degraded
    assert outcome.value == DEMO_SCHEMA


async def test_no_database_uses_demo_schema():
    outcome = await SchemaService(None, schemas=["SDA"]).get_schema_context()
    assert outcome.degraded
    assert "log_absen" in outcome.value


async def test_invalid_sample_table_names_are_ignored():
    db = CatalogDatabase()
    service = SchemaService(db, schemas=["SDA"], sample_tables=["m_ticket; DROP TABLE x"])
    assert await service.get_sample_data("m_ticket; DROP TABLE x") == []
    await service.get_schema_context()
    assert len(db.calls) == 1


class StalledDatabase:
    async def query(self, sql, params=None):
        await asyncio.Event().wait()


async def test_stalled_database_times_out_to_demo_schema():
    service = SchemaService(StalledDatabase(), schemas=["SDA"], sample_tables=["m_ticket"], timeout=0.05)
    outcome = await service.get_schema_context()
    assert outcome.degraded
    assert outcome.value == DEMO_SCHEMA
    assert "timed out" in outcome.reason
