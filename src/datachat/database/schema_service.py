"""Schema description for SQL planning: column metadata plus sample rows."""

from __future__ import annotations

import asyncio
import json
import re

from datachat.cache.query_cache import QueryCache
from datachat.exceptions import DataChatError
from datachat.models.domain import Outcome
from datachat.observability.logger import get_logger
from datachat.protocols.database import Database

logger = get_logger("schema_service")

_CACHE_KEY = "full_schema"
_TABLE_NAME = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)?$")

SCHEMA_QUERY = """
SELECT
  c.table_schema,
  c.table_name,
  c.column_name,
  c.data_type,
  c.is_nullable,
  c.column_default,
  pgd.description AS column_comment,
  tc.constraint_type,
  kcu2.table_schema AS foreign_table_schema,
  kcu2.table_name AS foreign_table_name,
  kcu2.column_name AS foreign_column_name
FROM information_schema.columns c
LEFT JOIN pg_catalog.pg_statio_all_tables st
  ON c.table_schema = st.schemaname AND c.table_name = st.relname
LEFT JOIN pg_catalog.pg_description pgd
  ON pgd.objoid = st.relid AND pgd.objsubid = c.ordinal_position
LEFT JOIN information_schema.key_column_usage kcu
  ON c.table_schema = kcu.table_schema
  AND c.table_name = kcu.table_name
  AND c.column_name = kcu.column_name
LEFT JOIN information_schema.table_constraints tc
  ON kcu.constraint_name = tc.constraint_name AND kcu.table_schema = tc.table_schema
LEFT JOIN information_schema.referential_constraints rc
  ON tc.constraint_name = rc.constraint_name AND tc.table_schema = rc.constraint_schema
LEFT JOIN information_schema.key_column_usage kcu2
  ON rc.unique_constraint_name = kcu2.constraint_name
  AND rc.unique_constraint_schema = kcu2.constraint_schema
WHERE c.table_schema = ANY(:schemas)
ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""

DEMO_SCHEMA = """SCHEMA DATABASE POSTGRESQL - MODE DEMO:

TABEL: "SDA"."log_absen"
   Deskripsi: Catatan kehadiran karyawan
   Kolom:
     - id:integer (PRIMARY KEY)
     - nama_karyawan:text [NOT NULL]
     - tanggal:date [NOT NULL]
     - jam_masuk:timestamp
     - jam_keluar:timestamp
     - lokasi_kerja:text
     - status_kehadiran:text

TABEL: "SDA"."m_ticket"
   Deskripsi: Tiket pekerjaan developer
   Kolom:
     - no_ticket:text (PRIMARY KEY)
     - judul:text [NOT NULL]
     - jenis:text
     - developer:text
     - status:text DEFAULT 'open'
     - created_at:timestamp DEFAULT CURRENT_TIMESTAMP
     - closed_at:timestamp

TABEL: "SDA"."nossa_closed"
   Deskripsi: Aduan gangguan pelanggan yang sudah ditutup
   Kolom:
     - incident:text (PRIMARY KEY)
     - service_id:text
     - witel:text
     - regional:text
     - symptom:text
     - reported_date:timestamp
     - resolved_date:timestamp
"""


def format_schema(rows: list[dict]) -> str:
    tables: dict[str, list[str]] = {}
    comments: dict[str, str] = {}
    for row in rows:
        table = f'"{row["table_schema"]}"."{row["table_name"]}"'
        column = f'{row["column_name"]}:{row["data_type"]}'
        if row.get("constraint_type") == "PRIMARY KEY":
            column += " (PRIMARY KEY)"
        elif row.get("constraint_type") == "FOREIGN KEY":
            column += (
                f' → "{row["foreign_table_schema"]}"."{row["foreign_table_name"]}"'
                f'."{row["foreign_column_name"]}"'
            )
        if row.get("is_nullable") == "NO":
            column += " [NOT NULL]"
        if row.get("column_default"):
            column += f' DEFAULT {row["column_default"]}'
        tables.setdefault(table, [])
        if column not in tables[table]:
            tables[table].append(column)
        if row.get("column_comment") and table not in comments:
            comments[table] = row["column_comment"]

    lines = ["SCHEMA DATABASE POSTGRESQL:", ""]
    for table, columns in tables.items():
        lines.append(f"TABEL: {table}")
        if table in comments:
            lines.append(f"   Deskripsi: {comments[table]}")
        lines.append("   Kolom:")
        lines.extend(f"     - {c}" for c in columns)
        lines.append("")
    return "\n".join(lines)


def format_samples(samples: dict[str, list[dict]]) -> str:
    if not samples:
        return ""
    lines = ["CONTOH DATA:"]
    for table, rows in samples.items():
        lines.append(f"   {table}:")
        lines.extend(f"     {json.dumps(r, default=str, ensure_ascii=False)}" for r in rows)
    return "\n".join(lines)


def _quote_table(name: str) -> str:
    return ".".join(f'"{part}"' for part in name.split("."))


class SchemaService:
    def __init__(
        self,
        database: Database | None,
        schemas: list[str],
        sample_tables: list[str] | None = None,
        sample_rows: int = 2,
        cache_ttl_seconds: float = 300,
        timeout: float = 15.0,
    ) -> None:
        self._db = database
        self._timeout = timeout
        self._schemas = schemas
        self._sample_tables = [t for t in (sample_tables or []) if _TABLE_NAME.match(t)]
        self._sample_rows = sample_rows
        self._cache = QueryCache(max_size=4, ttl_seconds=cache_ttl_seconds, name="schema")

    async def get_schema_context(self) -> Outcome[str]:
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return Outcome.real(cached)

        if self._db is None:
            return Outcome.fallback(DEMO_SCHEMA, "no database configured")

        try:
            metadata, *samples = await asyncio.wait_for(
                asyncio.gather(
                    self._db.query(SCHEMA_QUERY, {"schemas": self._schemas}),
                    *(self.get_sample_data(t) for t in self._sample_tables),
                    return_exceptions=True,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("schema_fetch_timeout", timeout_s=self._timeout)
            return Outcome.fallback(DEMO_SCHEMA, "schema fetch timed out")

        if isinstance(metadata, BaseException):
            logger.warning("schema_fetch_failed", error=str(metadata))
            return Outcome.fallback(DEMO_SCHEMA, f"schema unavailable: {metadata}")

        sample_map = {
            table: rows
            for table, rows in zip(self._sample_tables, samples)
            if not isinstance(rows, BaseException) and rows
        }
        context = format_schema(metadata.rows)
        sample_text = format_samples(sample_map)
        if sample_text:
            context = f"{context}\n{sample_text}\n"

        self._cache.set(_CACHE_KEY, context)
        logger.info(
            "schema_loaded",
            columns=len(metadata.rows),
            sampled_tables=len(sample_map),
        )
        return Outcome.real(context)

    async def get_sample_data(self, table: str) -> list[dict]:
        if self._db is None or not _TABLE_NAME.match(table):
            return []
        try:
            result = await self._db.query(
                f"SELECT * FROM {_quote_table(table)} LIMIT :limit",
                {"limit": self._sample_rows},
            )
        except DataChatError as e:
            logger.warning("sample_fetch_failed", table=table, error=str(e))
            return []
        return result.rows

    def clear_cache(self) -> None:
        self._cache.clear()
