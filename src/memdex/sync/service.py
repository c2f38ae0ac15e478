"""Sync service: keeps the index in step with the markdown on disk.

Per file: read + hash, skip if unchanged, chunk, compute or reuse vectors
(embedding cache first, then batch-embed the misses), then replace the file's
rows in ONE transaction. A failure rolls back that file only.

Every pass holds the service lock: one writer at a time.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from memdex.db import Repository, drop_vec_table, ensure_vec_table
from memdex.db.models import Chunk, SourceFile
from memdex.embeddings import EmbeddingProvider, HealthResult
from memdex.errors import ProviderUnavailableError
from memdex.ingest import BaseChunker, MarkdownChunker, hash_bytes
from memdex.notebook.paths import is_indexable, iter_markdown_files, relative_path
from memdex.state import IndexState

logger = logging.getLogger(__name__)

_PENDING_PAGE = 128


@dataclass
class SyncResult:
    """Counters for one sync pass."""

    files_scanned: int = 0
    files_changed: int = 0
    files_added: int = 0
    files_updated: int = 0
    files_removed: int = 0
    chunks_created: int = 0
    embeddings_computed: int = 0
    embeddings_cached_hit: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SyncService:
    """Diff the notebook against the index and apply the changes."""

    def __init__(self, state: IndexState, chunker: BaseChunker | None = None) -> None:
        self._state = state
        cfg = state.config.chunker
        self._chunker = chunker or MarkdownChunker(
            max_tokens=cfg.max_tokens, overlap_tokens=cfg.overlap_tokens
        )
        self._batch_size = max(1, state.config.embeddings.batch_size)
        self._lock = asyncio.Lock()

    @property
    def lock(self) -> asyncio.Lock:
        """The single-writer lock. Hold it to change what the index is bound to."""
        return self._lock

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def full_sync(self) -> SyncResult:
        """Sync every markdown file under the root and drop vanished ones."""
        async with self._lock:
            return await self._full_sync()

    async def incremental_sync(self, paths: Iterable[str | Path]) -> SyncResult:
        """Sync just *paths* (relative or absolute). Missing files are removed."""
        async with self._lock:
            started = time.monotonic()
            result = SyncResult()
            repo = self._state.ensure_open()
            rels = sorted({rel for rel in (relative_path(self._state.root, p) for p in paths) if rel})
            for rel in rels:
                if not is_indexable(rel):
                    continue
                result.files_scanned += 1
                path = self._state.root / rel
                if path.is_file():
                    await self._sync_file(repo, rel, path, result)
                else:
                    self._remove_file(repo, rel, result)
            if result.files_scanned:
                with repo.transaction():
                    repo.set_meta("last_sync_at", _now())
            result.duration_ms = _elapsed_ms(started)
            logger.debug("Incremental sync of %d path(s): %s", len(rels), result)
            return result

    async def rebuild(self) -> SyncResult:
        """Discard every index row and re-index from scratch.

        Works against a missing or empty store. The embedding cache is kept,
        so unchanged text is not re-embedded.
        """
        async with self._lock:
            repo = self._state.ensure_open()
            with repo.transaction():
                repo.clear_all()
                repo.set_meta("chunk_tokens", self._chunker.max_tokens)
                repo.set_meta("chunk_overlap", self._chunker.overlap_tokens)
            self._state.needs_rebuild = False
            logger.info("Rebuilding index from %s", self._state.root)
            return await self._full_sync()

    async def embed_pending(self) -> int:
        """Compute vectors for chunks still marked vector-pending.

        Returns:
            Number of chunks that received a vector.
        """
        async with self._lock:
            provider = self._state.registry.ready_provider()
            if provider is None:
                return 0
            repo = self._state.ensure_open()
            scratch = SyncResult()
            done = 0
            while True:
                pending = repo.list_pending_chunks(limit=_PENDING_PAGE)
                if not pending:
                    break
                vectors, fresh = await self._vectors_for(
                    repo, provider, [(c.text_hash, c.text) for c in pending], scratch
                )
                if not vectors:
                    break
                with repo.transaction():
                    for chunk in pending:
                        vector = vectors.get(chunk.text_hash)
                        if vector is not None and chunk.id is not None:
                            repo.add_vector(chunk.id, vector)
                            done += 1
                    for text_hash, vector in fresh.items():
                        repo.cache_vector(text_hash, provider.cache_key, vector)
                if len(vectors) < len({c.text_hash for c in pending}):
                    break
            if done:
                logger.info("Embedded %d pending chunk(s)", done)
            return done

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _full_sync(self) -> SyncResult:
        started = time.monotonic()
        result = SyncResult()
        repo = self._state.ensure_open()
        if repo.get_meta("chunk_tokens") is None:
            with repo.transaction():
                repo.set_meta("chunk_tokens", self._chunker.max_tokens)
                repo.set_meta("chunk_overlap", self._chunker.overlap_tokens)

        on_disk = dict(iter_markdown_files(self._state.root))
        result.files_scanned = len(on_disk)
        for rel, path in on_disk.items():
            await self._sync_file(repo, rel, path, result)

        for record in repo.list_files():
            if record.path not in on_disk:
                self._remove_file(repo, record.path, result)

        stamp = _now()
        with repo.transaction():
            repo.set_meta("last_full_sync_at", stamp)
            repo.set_meta("last_sync_at", stamp)
        self._state.needs_rebuild = False
        result.duration_ms = _elapsed_ms(started)
        logger.info(
            "Synced %d file(s): %d changed, %d removed, %d chunk(s), %d embedded, %d cached",
            result.files_scanned,
            result.files_changed,
            result.files_removed,
            result.chunks_created,
            result.embeddings_computed,
            result.embeddings_cached_hit,
        )
        return result

    async def _sync_file(self, repo: Repository, rel: str, path: Path, result: SyncResult) -> None:
        try:
            data = path.read_bytes()
            stat = path.stat()
        except OSError as exc:
            # vanished or unreadable between scan and read; next pass reconciles
            result.errors.append(f"{rel}: {exc}")
            logger.warning("Could not read %s: %s", rel, exc)
            return

        content_hash = hash_bytes(data)
        existing = repo.get_file(rel)
        if existing is not None and existing.content_hash == content_hash:
            return

        drafts = self._chunker.chunk(data.decode("utf-8", errors="replace"))
        vectors: dict[str, list[float]] = {}
        fresh: dict[str, list[float]] = {}
        provider = self._state.registry.ready_provider()
        if provider is not None and drafts:
            vectors, fresh = await self._vectors_for(
                repo, provider, [(d.text_hash, d.text) for d in drafts], result
            )

        try:
            with repo.transaction():
                repo.delete_chunks_for_file(rel)
                repo.upsert_file(
                    SourceFile(
                        path=rel,
                        content_hash=content_hash,
                        modified_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
                        size_bytes=len(data),
                        last_indexed_at=_now(),
                    )
                )
                for draft in drafts:
                    chunk_id = repo.add_chunk(
                        Chunk(
                            file_path=rel,
                            heading=draft.heading,
                            start_line=draft.start_line,
                            end_line=draft.end_line,
                            text=draft.text,
                            text_hash=draft.text_hash,
                        )
                    )
                    vector = vectors.get(draft.text_hash)
                    if vector is not None:
                        repo.add_vector(chunk_id, vector)
                if provider is not None:
                    for text_hash, vector in fresh.items():
                        repo.cache_vector(text_hash, provider.cache_key, vector)
        except sqlite3.Error as exc:
            result.errors.append(f"{rel}: {exc}")
            logger.warning("Indexing %s failed and was rolled back: %s", rel, exc)
            return

        result.files_changed += 1
        if existing is None:
            result.files_added += 1
        else:
            result.files_updated += 1
        result.chunks_created += len(drafts)

    def _remove_file(self, repo: Repository, rel: str, result: SyncResult) -> None:
        if repo.get_file(rel) is None:
            return
        with repo.transaction():
            repo.delete_file(rel)
        result.files_removed += 1
        logger.debug("Removed %s from index", rel)

    async def _vectors_for(
        self,
        repo: Repository,
        provider: EmbeddingProvider,
        items: list[tuple[str, str]],
        result: SyncResult,
    ) -> tuple[dict[str, list[float]], dict[str, list[float]]]:
        """Return ``(all_vectors, freshly_computed)`` keyed by text hash.

        On provider failure the registry is marked degraded and whatever was
        found so far is returned; the remaining chunks stay vector-pending.
        """
        self._state.bind_provider(provider)
        texts = dict(items)
        cached = repo.get_cached_vectors(list(texts), provider.cache_key)
        result.embeddings_cached_hit += len(cached)

        misses = [h for h in texts if h not in cached]
        fresh: dict[str, list[float]] = {}
        try:
            for i in range(0, len(misses), self._batch_size):
                batch = misses[i : i + self._batch_size]
                computed = await provider.embed_batch([texts[h] for h in batch])
                fresh.update(zip(batch, computed))
        except ProviderUnavailableError as exc:
            self._state.registry.set_degraded(
                HealthResult(healthy=False, message=exc.message, resolution=exc.resolution)
            )
        result.embeddings_computed += len(fresh)

        vectors = {**cached, **fresh}
        if vectors:
            self._ensure_vectors(repo, len(next(iter(vectors.values()))))
        return vectors, fresh

    def _ensure_vectors(self, repo: Repository, dimensions: int) -> None:
        """Create the vector table for *dimensions*, replacing one of another size."""
        current = repo.get_index_meta().dimensions
        if current == dimensions:
            ensure_vec_table(repo.conn, dimensions)
            return
        if current is not None:
            logger.info("Vector dimensions changed %d -> %d; clearing vectors", current, dimensions)
        drop_vec_table(repo.conn)
        ensure_vec_table(repo.conn, dimensions)
        with repo.transaction():
            repo.set_meta("dimensions", dimensions)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
