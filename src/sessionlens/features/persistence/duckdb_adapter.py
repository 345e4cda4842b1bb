from __future__ import annotations

import json
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import duckdb

from .schema import SESSIONS_TABLE_NAME, create_schema

COLUMNS: tuple[str, ...] = (
    "project_id",
    "session_id",
    "source",
    "stored_at",
    "page_url",
    "page_title",
    "total_duration",
    "event_count",
    "viewport_width",
    "viewport_height",
    "log_count",
    "logs_json",
    "summary_json",
    "signals_json",
    "fingerprint",
)


@dataclass(frozen=True)
class DuckDBWriteResult:
    num_sessions: int
    duration_ms: float


class DuckDBAdapter:
    """
    DuckDB persistence adapter. Owns the connection and schema.
    """

    def __init__(self, path: str, *, clean_slate: bool) -> None:
        self.path = path
        self.clean_slate = clean_slate
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self.clean_slate and os.path.exists(self.path):
            os.remove(self.path)

        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self._conn = duckdb.connect(self.path)
        create_schema(self._conn)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def write_sessions(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        """
        Upsert a batch of rows in COLUMNS order. Re-analyzing a session replaces
        its previous row.
        """
        if not rows:
            return DuckDBWriteResult(num_sessions=0, duration_ms=0.0)

        t0 = time.perf_counter()
        placeholders = ", ".join("?" for _ in COLUMNS)
        self.conn.executemany(
            f"INSERT OR REPLACE INTO {SESSIONS_TABLE_NAME} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
            rows,
        )
        dt_ms = (time.perf_counter() - t0) * 1000.0
        return DuckDBWriteResult(num_sessions=len(rows), duration_ms=dt_ms)

    def count_sessions(self, project_id: str) -> int:
        res = self.conn.execute(
            f"SELECT COUNT(*) FROM {SESSIONS_TABLE_NAME} WHERE project_id = ?",
            [project_id],
        ).fetchone()
        return int(res[0]) if res else 0

    def fetch_session(self, project_id: str, session_id: str) -> dict[str, Any] | None:
        """One stored session with its JSON columns decoded, or None."""
        cur = self.conn.execute(
            f"SELECT {', '.join(COLUMNS)} FROM {SESSIONS_TABLE_NAME} WHERE project_id = ? AND session_id = ?",
            [project_id, session_id],
        )
        row = cur.fetchone()
        if row is None:
            return None
        record = dict(zip(COLUMNS, row, strict=True))
        for key in ("logs_json", "summary_json", "signals_json"):
            record[key.removesuffix("_json")] = json.loads(record.pop(key))
        return record
