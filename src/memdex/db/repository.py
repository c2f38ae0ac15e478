"""Repository pattern for all memdex index operations.

Single interface for: files, chunks, FTS5 search, vectors, embedding cache, meta.
Write methods do not commit; group them inside ``Repository.transaction()`` so
a file's rows are replaced as one unit.
"""

from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from memdex.db.models import Chunk, IndexMeta, SourceFile
from memdex.db.vectors import VEC_TABLE, vec_table_exists

_CHUNK_COLUMNS = (
    "id, file_path, heading, start_line, end_line, text, text_hash, has_vector, created_at"
)

_META_INT_KEYS = ("dimensions", "chunk_tokens", "chunk_overlap")


class Repository:
    """Data access layer for the memdex index.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    (normally ``IndexState``) and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see memdex.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[Repository]:
        """Run the enclosed writes in one transaction (commit or roll back)."""
        with self._conn:
            yield self

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upsert_file(self, record: SourceFile) -> None:
        """Insert or update the fingerprint row for *record.path*.

        Uses ON CONFLICT ... DO UPDATE so the row is never deleted (a delete
        would cascade to the file's chunks).
        """
        self._conn.execute(
            """
            INSERT INTO files (path, content_hash, modified_at, size_bytes, last_indexed_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                content_hash = excluded.content_hash,
                modified_at = excluded.modified_at,
                size_bytes = excluded.size_bytes,
                last_indexed_at = excluded.last_indexed_at
            """,
            (
                record.path,
                record.content_hash,
                record.modified_at,
                record.size_bytes,
                record.last_indexed_at,
            ),
        )

    def get_file(self, path: str) -> SourceFile | None:
        """Return the fingerprint row for *path*, or None if not indexed."""
        row = self._conn.execute(
            "SELECT path, content_hash, modified_at, size_bytes, last_indexed_at "
            "FROM files WHERE path = ?",
            (path,),
        ).fetchone()
        return _row_to_file(row) if row else None

    def list_files(self) -> list[SourceFile]:
        """Return all indexed files ordered by path."""
        rows = self._conn.execute(
            "SELECT path, content_hash, modified_at, size_bytes, last_indexed_at "
            "FROM files ORDER BY path"
        ).fetchall()
        return [_row_to_file(r) for r in rows]

    def delete_file(self, path: str) -> None:
        """Delete *path*'s fingerprint row together with its chunks, FTS and vectors."""
        self.delete_chunks_for_file(path)
        self._conn.execute("DELETE FROM files WHERE path = ?", (path,))

    def count_files(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert chunk + sync FTS5 index. Returns the new chunk id."""
        cur = self._conn.execute(
            """
            INSERT INTO chunks (file_path, heading, start_line, end_line, text, text_hash, has_vector)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.file_path,
                chunk.heading,
                chunk.start_line,
                chunk.end_line,
                chunk.text,
                chunk.text_hash,
                1 if chunk.has_vector else 0,
            ),
        )
        chunk_id = cur.lastrowid
        # Keep FTS5 in sync with explicit rowid mapping
        self._conn.execute(
            "INSERT INTO chunks_fts(rowid, text, heading) VALUES (?, ?, ?)",
            (chunk_id, chunk.text, chunk.heading or ""),
        )
        chunk.id = chunk_id
        return chunk_id

    def get_chunks(self, chunk_ids: list[int]) -> dict[int, Chunk]:
        """Return ``{id: Chunk}`` for the ids that exist."""
        if not chunk_ids:
            return {}
        placeholders = ",".join("?" * len(chunk_ids))
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id IN ({placeholders})",  # noqa: S608
            chunk_ids,
        ).fetchall()
        return {r["id"]: _row_to_chunk(r) for r in rows}

    def list_chunks_for_file(self, path: str) -> list[Chunk]:
        """Return *path*'s chunks in document order."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE file_path = ? ORDER BY start_line, id",
            (path,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]

    def count_chunks_by_file(self) -> dict[str, int]:
        """Return ``{path: chunk_count}`` for every file that has chunks."""
        rows = self._conn.execute(
            "SELECT file_path, COUNT(*) AS n FROM chunks GROUP BY file_path"
        ).fetchall()
        return {r["file_path"]: r["n"] for r in rows}

    def count_pending(self) -> int:
        """Return the number of chunks still waiting for a vector."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE has_vector = 0"
        ).fetchone()[0]

    def list_pending_chunks(self, limit: int = 256) -> list[Chunk]:
        """Return up to *limit* vector-pending chunks, oldest first."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE has_vector = 0 ORDER BY id LIMIT ?",
            (limit,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def delete_chunks_for_file(self, path: str) -> list[int]:
        """Delete chunks + FTS + vector rows for *path* (virtual tables don't cascade).

        Returns the deleted chunk ids.
        """
        ids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM chunks WHERE file_path = ?", (path,)
            ).fetchall()
        ]
        if ids:
            placeholders = ",".join("?" * len(ids))
            self._conn.execute(
                f"DELETE FROM chunks_fts WHERE rowid IN ({placeholders})", ids  # noqa: S608
            )
            if vec_table_exists(self._conn):
                self._conn.executemany(
                    f"DELETE FROM {VEC_TABLE} WHERE rowid = ?", [(i,) for i in ids]
                )
            self._conn.execute(
                f"DELETE FROM chunks WHERE id IN ({placeholders})", ids  # noqa: S608
            )
        return ids

    def clear_all(self) -> None:
        """Delete every file, chunk, FTS and vector row. The embedding cache is kept."""
        self._conn.execute("DELETE FROM chunks_fts")
        if vec_table_exists(self._conn):
            self._conn.execute(f"DELETE FROM {VEC_TABLE}")
        self._conn.execute("DELETE FROM chunks")
        self._conn.execute("DELETE FROM files")

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def add_vector(self, chunk_id: int, vector: list[float]) -> None:
        """Insert a vector for *chunk_id* and clear its vector-pending flag."""
        self._conn.execute(
            f"INSERT INTO {VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
            (chunk_id, json.dumps(vector)),
        )
        self._conn.execute("UPDATE chunks SET has_vector = 1 WHERE id = ?", (chunk_id,))

    def count_vectors(self) -> int:
        if not vec_table_exists(self._conn):
            return 0
        return self._conn.execute(f"SELECT COUNT(*) FROM {VEC_TABLE}").fetchone()[0]

    def search_vec(self, vector: list[float], limit: int = 30) -> list[tuple[int, float]]:
        """Cosine nearest-neighbour search. Returns (chunk_id, distance), nearest first."""
        if not vec_table_exists(self._conn):
            return []
        rows = self._conn.execute(
            f"SELECT rowid, distance FROM {VEC_TABLE} "
            "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
            (json.dumps(vector), limit),
        ).fetchall()
        return [(r["rowid"], r["distance"]) for r in rows]

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(self, query: str, limit: int = 30) -> list[tuple[int, float]]:
        """BM25 full-text search. Returns (chunk_id, score) sorted best-first.

        bm25() returns negative values; lower (more negative) = better match.
        Query terms are OR-ed so a chunk matching more terms ranks higher
        without every term being required.
        """
        fts_query = build_fts_query(query)
        if not fts_query:
            return []
        try:
            rows = self._conn.execute(
                "SELECT rowid, bm25(chunks_fts, 1.0, 0.5) AS score FROM chunks_fts "
                "WHERE chunks_fts MATCH ? ORDER BY score LIMIT ?",
                (fts_query, limit),
            ).fetchall()
        except sqlite3.OperationalError:
            # FTS5 syntax errors surface as OperationalError; treat as no match.
            return []
        return [(r["rowid"], r["score"]) for r in rows]

    # ------------------------------------------------------------------
    # Embedding cache
    # ------------------------------------------------------------------

    def get_cached_vectors(self, text_hashes: list[str], model_id: str) -> dict[str, list[float]]:
        """Return ``{text_hash: vector}`` for cached entries of *model_id*."""
        if not text_hashes:
            return {}
        unique = list(dict.fromkeys(text_hashes))
        placeholders = ",".join("?" * len(unique))
        rows = self._conn.execute(
            f"SELECT text_hash, vector FROM embedding_cache "  # noqa: S608
            f"WHERE model_id = ? AND text_hash IN ({placeholders})",
            (model_id, *unique),
        ).fetchall()
        return {r["text_hash"]: json.loads(r["vector"]) for r in rows}

    def cache_vector(self, text_hash: str, model_id: str, vector: list[float]) -> None:
        """Add a cache entry. Existing entries are never overwritten."""
        self._conn.execute(
            "INSERT OR IGNORE INTO embedding_cache (text_hash, model_id, vector) VALUES (?, ?, ?)",
            (text_hash, model_id, json.dumps(vector)),
        )

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str | int | None) -> None:
        """Set *key*; ``None`` deletes it."""
        if value is None:
            self._conn.execute("DELETE FROM meta WHERE key = ?", (key,))
            return
        self._conn.execute(
            "INSERT INTO meta (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, str(value)),
        )

    def get_index_meta(self) -> IndexMeta:
        rows = self._conn.execute("SELECT key, value FROM meta").fetchall()
        raw = {r["key"]: r["value"] for r in rows}
        ints = {k: int(raw[k]) if raw.get(k) else None for k in _META_INT_KEYS}
        return IndexMeta(
            provider_id=raw.get("provider_id"),
            model_id=raw.get("model_id"),
            dimensions=ints["dimensions"],
            last_full_sync_at=raw.get("last_full_sync_at"),
            last_sync_at=raw.get("last_sync_at"),
            chunk_tokens=ints["chunk_tokens"],
            chunk_overlap=ints["chunk_overlap"],
        )


# ------------------------------------------------------------------
# Query helpers
# ------------------------------------------------------------------

def build_fts_query(query: str) -> str:
    """Turn free text into an FTS5 query of OR-ed, quoted terms.

    FTS5 MATCH rejects punctuation like commas as syntax errors, so anything
    that is not a word character is treated as a separator.
    """
    terms = re.sub(r"[^\w\s]", " ", query).split()
    unique = list(dict.fromkeys(t.lower() for t in terms))
    return " OR ".join(f'"{t}"' for t in unique)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_file(row: sqlite3.Row) -> SourceFile:
    return SourceFile(
        path=row["path"],
        content_hash=row["content_hash"],
        modified_at=row["modified_at"],
        size_bytes=row["size_bytes"],
        last_indexed_at=row["last_indexed_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        file_path=row["file_path"],
        heading=row["heading"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        text=row["text"],
        text_hash=row["text_hash"],
        has_vector=bool(row["has_vector"]),
        created_at=row["created_at"],
    )
