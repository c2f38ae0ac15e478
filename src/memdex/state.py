"""IndexState: the explicit handle shared by sync, search and status.

Owns the database path, the open connection, its Repository and the provider
registry. There are no module-level singletons; every service receives the
IndexState it works on.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from memdex.config import MemdexConfig
from memdex.db import Database, Repository, check_health, drop_vec_table, has_schema, initialize
from memdex.embeddings import EmbeddingProvider, ProviderRegistry, build_registry
from memdex.errors import IndexCorruptError

logger = logging.getLogger(__name__)


class IndexState:
    """Open-on-demand index store plus the embedding provider registry.

    Attributes:
        needs_rebuild: Set when the store was created or recreated and holds
            no rows yet; cleared by ``SyncService.rebuild()``.
    """

    def __init__(self, config: MemdexConfig, registry: ProviderRegistry | None = None) -> None:
        self.config = config
        self.root: Path = config.notebook.root.resolve()
        self.database = Database(config.notebook.resolved_db_path)
        self.registry = registry if registry is not None else build_registry(config.embeddings)
        self.needs_rebuild = False
        self._conn: sqlite3.Connection | None = None
        self._repo: Repository | None = None

    @property
    def db_path(self) -> Path:
        return self.database.db_path

    @property
    def repo(self) -> Repository:
        return self.ensure_open()

    def ensure_open(self) -> Repository:
        """Return the Repository, opening or recreating the store as needed.

        A missing or empty file gets a fresh schema. A file that fails to open
        or fails its health check is deleted (with its WAL/SHM sidecars) and
        recreated. Whenever the schema had to be created, ``needs_rebuild`` is
        set.

        Raises:
            IndexCorruptError: If the store cannot be recreated.
        """
        if self._repo is not None:
            if self.db_path.exists():
                return self._repo
            logger.warning("Index database %s disappeared; recreating", self.db_path)
            self.close()

        try:
            conn, fresh = self._open_checked()
        except sqlite3.DatabaseError as exc:
            logger.warning("Index database %s is unusable (%s); recreating", self.db_path, exc)
            self.database.remove_files()
            try:
                conn, fresh = self._open_checked()
            except sqlite3.Error as retry_exc:
                raise IndexCorruptError(
                    f"Could not recreate index database at {self.db_path}: {retry_exc}"
                ) from retry_exc

        if fresh:
            self.needs_rebuild = True
        self._conn = conn
        self._repo = Repository(conn)
        return self._repo

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._repo = None

    def is_healthy(self) -> bool:
        """Return True if the store opens and passes its health check. Never raises."""
        if not self.db_path.exists():
            return False
        try:
            if self._conn is not None:
                check_health(self._conn)
            else:
                with self.database as conn:
                    check_health(conn)
        except sqlite3.Error:
            return False
        return True

    # ------------------------------------------------------------------
    # Provider binding
    # ------------------------------------------------------------------

    def bind_provider(self, provider: EmbeddingProvider | None) -> bool:
        """Record *provider* in index meta, resetting vectors if it changed.

        The vector table and every chunk's vector flag are cleared before the
        new provider writes anything, so dimensions never mix.

        Returns:
            True if vectors from a previous provider/model were discarded.
        """
        repo = self.ensure_open()
        meta = repo.get_index_meta()
        provider_id = provider.id if provider else None
        model_id = provider.model_id if provider else None
        if (meta.provider_id, meta.model_id) == (provider_id, model_id):
            return False

        had_vectors = repo.count_vectors() > 0
        drop_vec_table(repo.conn)
        with repo.transaction():
            repo.set_meta("provider_id", provider_id)
            repo.set_meta("model_id", model_id)
            repo.set_meta("dimensions", None)
        if meta.provider_id is not None:
            logger.info(
                "Embedding provider changed from %s/%s to %s/%s; vector index cleared",
                meta.provider_id,
                meta.model_id,
                provider_id,
                model_id,
            )
        return had_vectors

    def chunker_changed(self) -> bool:
        """True if the index was built with different chunker settings."""
        meta = self.repo.get_index_meta()
        if meta.chunk_tokens is None:
            return False
        return (meta.chunk_tokens, meta.chunk_overlap) != (
            self.config.chunker.max_tokens,
            self.config.chunker.overlap_tokens,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_checked(self) -> tuple[sqlite3.Connection, bool]:
        """Open, migrate and check the store. The flag is True if no schema existed."""
        conn = self.database.connect()
        try:
            fresh = not has_schema(conn)
            initialize(conn)
            check_health(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn, fresh
