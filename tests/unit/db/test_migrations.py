"""Tests for the connection layer, schema init and migration runner."""

from __future__ import annotations

import sqlite3

from docquarry.db.connection import Database
from docquarry.db.migrations import MIGRATIONS, current_version, run_migrations
from docquarry.db.schema import CURRENT_VERSION, initialize


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


def test_connect_sets_row_factory_and_wal(tmp_path):
    conn = Database(tmp_path / "t.db").connect()
    try:
        assert conn.row_factory is sqlite3.Row
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    finally:
        conn.close()


def test_database_context_manager(tmp_path):
    with Database(tmp_path / "t.db") as conn:
        conn.execute("SELECT 1")
    assert (tmp_path / "t.db").exists()


def test_fresh_database_is_version_zero(tmp_path):
    with Database(tmp_path / "t.db") as conn:
        assert current_version(conn) == 0


def test_initialize_creates_tables(tmp_db):
    assert {"sources", "chunks", "schema_version"} <= _tables(tmp_db)
    assert current_version(tmp_db) == CURRENT_VERSION


def test_current_version_matches_last_migration():
    assert CURRENT_VERSION == MIGRATIONS[-1][0]


def test_migrations_are_idempotent(tmp_db):
    run_migrations(tmp_db)
    initialize(tmp_db)
    count = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)


def test_migration_versions_ascend():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)
