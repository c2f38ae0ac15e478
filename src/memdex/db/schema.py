"""Schema initialization and health checks."""

from __future__ import annotations

import sqlite3

from memdex.db.migrations import MIGRATIONS, current_version, run_migrations

CURRENT_VERSION = MIGRATIONS[-1][0]

_REQUIRED_TABLES = frozenset(["files", "chunks", "chunks_fts", "embedding_cache", "meta"])


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    run_migrations(conn)


def has_schema(conn: sqlite3.Connection) -> bool:
    """True if at least one migration has been applied to *conn*."""
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    return row is not None and current_version(conn) > 0


def check_health(conn: sqlite3.Connection) -> None:
    """Raise ``sqlite3.DatabaseError`` if the store is unusable.

    Runs SQLite's quick integrity check and verifies every required table
    exists.
    """
    row = conn.execute("PRAGMA quick_check").fetchone()
    if row is None or row[0] != "ok":
        raise sqlite3.DatabaseError(f"integrity check failed: {row[0] if row else 'no result'}")

    names = {
        r[0]
        for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')"
        ).fetchall()
    }
    missing = _REQUIRED_TABLES - names
    if missing:
        raise sqlite3.DatabaseError(f"missing tables: {', '.join(sorted(missing))}")
