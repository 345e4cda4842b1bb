from __future__ import annotations

SESSIONS_TABLE_NAME = "semantic_sessions"

# Compact analysis output only. Raw events are never stored.
# No secondary indexes: DuckDB cannot upsert columns that an index references.
SESSIONS_DDL = f"""
CREATE TABLE IF NOT EXISTS {SESSIONS_TABLE_NAME} (
    project_id TEXT NOT NULL,
    session_id TEXT NOT NULL,

    source TEXT NOT NULL,
    stored_at TIMESTAMP NOT NULL,

    page_url TEXT,
    page_title TEXT,
    total_duration TEXT NOT NULL,
    event_count INTEGER NOT NULL,
    viewport_width INTEGER,
    viewport_height INTEGER,

    log_count INTEGER NOT NULL,
    logs_json TEXT NOT NULL,
    summary_json TEXT NOT NULL,
    signals_json TEXT NOT NULL,

    fingerprint TEXT NOT NULL,

    PRIMARY KEY (project_id, session_id)
);
"""


def create_schema(conn) -> None:
    """
    Create tables. No migrations. Safe to call on every open.
    """
    conn.execute(SESSIONS_DDL)
