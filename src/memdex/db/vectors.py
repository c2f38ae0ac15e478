"""sqlite-vec virtual table management for chunk vectors.

One vector table per index: its dimensionality is fixed by IndexMeta. Switching
provider or model drops it (drop_vec_table) before any new vector is written.
"""

from __future__ import annotations

import sqlite3

VEC_TABLE = "chunks_vec"


def vec_table_exists(conn: sqlite3.Connection) -> bool:
    """Return True if the chunks_vec virtual table exists."""
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (VEC_TABLE,)
    ).fetchone()
    return row is not None


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create the chunks_vec virtual table if it doesn't already exist.

    Vectors are compared with cosine distance.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (e.g. 768 for nomic-embed-text).

    Returns:
        The table name.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    if not vec_table_exists(conn):
        conn.execute(
            f"CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()

    return VEC_TABLE


def drop_vec_table(conn: sqlite3.Connection) -> None:
    """Drop the vector table and mark every chunk vector-pending."""
    conn.execute(f"DROP TABLE IF EXISTS {VEC_TABLE}")
    conn.execute("UPDATE chunks SET has_vector = 0")
    conn.commit()
