"""Forward-only migration runner for the docquarry database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id              TEXT PRIMARY KEY,
    root_path       TEXT NOT NULL,
    name            TEXT NOT NULL,
    policy          TEXT NOT NULL DEFAULT '{}',
    status          TEXT NOT NULL DEFAULT 'registered',
    registered_at   TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    last_indexed_at TEXT,
    last_checkpoint TEXT,
    file_count      INTEGER,
    error_message   TEXT
);

CREATE TABLE IF NOT EXISTS chunks (
    id                  TEXT PRIMARY KEY,
    source_id           TEXT NOT NULL,
    source_path         TEXT NOT NULL,
    chunk_index         INTEGER NOT NULL,
    total_chunks        INTEGER NOT NULL,
    heading             TEXT,
    heading_hierarchy   TEXT NOT NULL DEFAULT '[]',
    content             TEXT NOT NULL,
    start_offset        INTEGER NOT NULL,
    end_offset          INTEGER NOT NULL,
    metadata            TEXT NOT NULL DEFAULT '{}',
    embedding           TEXT NOT NULL DEFAULT '[]',
    embedding_metadata  TEXT,
    fts_indexed         INTEGER NOT NULL DEFAULT 0,
    created_at          DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_chunks_source_path ON chunks (source_id, source_path);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    conn.execute(_CREATE_SCHEMA_VERSION)
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    current = current_version(conn)
    conn.commit()

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
