"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

# Sidecar files SQLite creates next to the database in WAL mode.
_SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


class Database:
    """The memdex index database: one SQLite file with sqlite-vec loaded.

    The file is derived state. Deleting it (see ``remove_files``) never
    touches the notebook's markdown.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection.

        Parent directories are created as needed. Raises ``sqlite3.DatabaseError``
        if the file exists but is not a usable SQLite database.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Owned by one event loop, which may not run on the creating thread.
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        try:
            conn.row_factory = sqlite3.Row
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA busy_timeout = 5000")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def remove_files(self) -> None:
        """Delete the database file and its WAL/SHM sidecars, if present."""
        for path in [self.db_path, *(Path(f"{self.db_path}{s}") for s in _SIDECAR_SUFFIXES)]:
            path.unlink(missing_ok=True)

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
