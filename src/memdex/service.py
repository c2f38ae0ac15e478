"""Memdex: facade wiring the notebook, index, sync and search together.

This is what the agent layer, the HTTP surface and the CLI talk to. It owns
one IndexState and the services built on it; nothing here is global.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sqlite3
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from memdex.config import MemdexConfig
from memdex.embeddings import (
    PROVIDER_ALIASES,
    HealthResult,
    ProviderRegistry,
    create_provider,
)
from memdex.ingest import hash_bytes
from memdex.notebook import (
    WriteResult,
    append_daily_entry,
    delete_note_section,
    read_note,
    write_note,
)
from memdex.search import DegradedInfo, SearchResponse, SearchService
from memdex.state import IndexState
from memdex.sync import Debouncer, NotebookWatcher, SyncResult, SyncService

logger = logging.getLogger(__name__)

REBUILD_WARNING = "Embedding provider changed. Vector index cleared, rebuild required."


@dataclass
class ProviderStatus:
    id: str | None
    model: str | None
    dimensions: int | None
    state: str


@dataclass
class IndexStatus:
    """Snapshot of index health. Produced without raising."""

    files_indexed: int
    total_chunks: int
    vectors_stored: int
    vector_pending: int
    last_sync: str | None
    provider: ProviderStatus
    db_healthy: bool
    degraded: DegradedInfo | None = None
    chunker_changed: bool = False


@dataclass
class FileStatus:
    path: str
    hash: str
    modified_at: str
    size_bytes: int
    chunk_count: int
    stale: bool


@dataclass
class ActivationResult:
    provider_id: str
    model: str
    healthy: bool
    vectors_reset: bool
    warning: str | None = None
    message: str | None = None


class Memdex:
    """A notebook and its index.

    Example:
        memdex = Memdex(load_config(Path("~/notes").expanduser()))
        await memdex.start()
        response = await memdex.search("Sarah phone")
    """

    def __init__(self, config: MemdexConfig, registry: ProviderRegistry | None = None) -> None:
        self.config = config
        self.state = IndexState(config, registry)
        self.sync = SyncService(self.state)
        self.searcher = SearchService(self.state)
        self.debouncer = Debouncer(self.sync.incremental_sync, window=config.sync.debounce_seconds)
        self._watcher: NotebookWatcher | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def root(self) -> Path:
        return self.state.root

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, watch: bool = False) -> SyncResult:
        """Open the index, health-check the provider, and bring the index up to date."""
        self.state.ensure_open()
        await self.check_provider_health()
        if self.state.needs_rebuild or self.state.chunker_changed():
            result = await self.sync.rebuild()
        else:
            result = await self.sync.full_sync()
        if watch:
            self.start_watching()
        return result

    async def close(self) -> None:
        await self.stop_watching()
        await self.debouncer.flush_now()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self.state.close()

    def start_watching(self) -> None:
        if self._watch_task is not None:
            return
        self._watcher = NotebookWatcher(self.root, self.debouncer)
        self._watch_task = asyncio.get_running_loop().create_task(self._watcher.run())

    async def stop_watching(self) -> None:
        if self._watcher is None or self._watch_task is None:
            return
        self._watcher.stop()
        try:
            await self._watch_task
        except asyncio.CancelledError:
            pass
        self._watcher = None
        self._watch_task = None

    async def flush(self) -> None:
        """Sync any debounced changes now."""
        await self.debouncer.flush_now()

    # ------------------------------------------------------------------
    # Agent tools
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        sources: list[str] | None = None,
        max_results: int | None = None,
        min_score: float | None = None,
    ) -> SearchResponse:
        """Hybrid search. Recreates and rebuilds a missing or corrupt index first.

        Raises:
            IndexCorruptError: Only if the index cannot be recreated.
        """
        self.state.ensure_open()
        if self.state.needs_rebuild:
            await self.sync.rebuild()
        try:
            return await self.searcher.search(
                query, sources=sources, max_results=max_results, min_score=min_score
            )
        except sqlite3.Error as exc:
            logger.error("Search failed on the index store: %s", exc)
            self.state.close()
            groups = [g for g in self.searcher.group_names if not sources or g in sources]
            return SearchResponse(groups={name: [] for name in groups})

    def get(
        self,
        path: str,
        start_line: int | None = None,
        line_count: int | None = None,
        section: str | None = None,
    ) -> str:
        return read_note(
            self.root, path, start_line=start_line, line_count=line_count, section=section
        )

    async def write(
        self,
        path: str,
        content: str,
        section: str | None = None,
        replace: bool = False,
    ) -> WriteResult:
        """Write to a notebook file and schedule it for indexing.

        Last write wins: there is no precondition on the file's prior content.
        """
        result = write_note(self.root, path, content, section=section, replace=replace)
        if result.success:
            self.debouncer.add(result.path)
        return result

    async def delete_section(self, path: str, section: str) -> WriteResult:
        """Remove a heading block from a notebook file and schedule it for indexing."""
        result = delete_note_section(self.root, path, section)
        if result.success:
            self.debouncer.add(result.path)
        return result

    async def append_daily_entry(self, text: str, now: datetime | None = None) -> dict[str, str]:
        rel = append_daily_entry(self.root, text, now=now)
        self.debouncer.add(rel)
        return {"path": rel}

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def status(self) -> IndexStatus:
        provider = self._provider_status()
        degraded = self.searcher.degraded_info()
        if not self.state.is_healthy():
            return IndexStatus(0, 0, 0, 0, None, provider, db_healthy=False, degraded=degraded)
        try:
            repo = self.state.repo
            meta = repo.get_index_meta()
            if provider.dimensions is None:
                provider.dimensions = meta.dimensions
            return IndexStatus(
                files_indexed=repo.count_files(),
                total_chunks=repo.count_chunks(),
                vectors_stored=repo.count_vectors(),
                vector_pending=repo.count_pending(),
                last_sync=meta.last_sync_at or meta.last_full_sync_at,
                provider=provider,
                db_healthy=True,
                degraded=degraded,
                chunker_changed=self.state.chunker_changed(),
            )
        except sqlite3.Error as exc:
            logger.warning("Status query failed: %s", exc)
            return IndexStatus(0, 0, 0, 0, None, provider, db_healthy=False, degraded=degraded)

    def files(self) -> list[FileStatus]:
        """List indexed files with a ``stale`` flag for on-disk drift."""
        repo = self.state.ensure_open()
        counts = repo.count_chunks_by_file()
        statuses: list[FileStatus] = []
        for record in repo.list_files():
            path = self.root / record.path
            try:
                stale = hash_bytes(path.read_bytes()) != record.content_hash
            except OSError:
                stale = True
            statuses.append(
                FileStatus(
                    path=record.path,
                    hash=record.content_hash,
                    modified_at=record.modified_at,
                    size_bytes=record.size_bytes,
                    chunk_count=counts.get(record.path, 0),
                    stale=stale,
                )
            )
        return statuses

    async def rebuild(self) -> SyncResult:
        self.state.ensure_open()
        return await self.sync.rebuild()

    async def full_sync(self) -> SyncResult:
        return await self.sync.full_sync()

    async def activate_provider(
        self, provider_id: str, settings: dict[str, Any] | None = None
    ) -> ActivationResult:
        """Switch the embedding provider.

        A change of provider or model clears the vector index before the new
        provider writes anything. ``disabled`` (or ``none``) turns embeddings off.

        Raises:
            ValueError: If *provider_id* is unknown.
        """
        settings = settings or {}
        provider_id = PROVIDER_ALIASES.get(provider_id, provider_id)
        cfg = dataclasses.replace(
            self.config.embeddings,
            provider=provider_id,
            model=settings.get("model", self.config.embeddings.model),
            api_base=settings.get("api_base", settings.get("apiBase", self.config.embeddings.api_base)),
        )
        provider = create_provider(cfg)
        health = await provider.health_check()

        registry = self.state.registry
        # a running pass finishes with the old provider before vectors are reset
        async with self.sync.lock:
            registry.register(provider)
            registry.set_active(provider.id)
            self.config.embeddings = cfg
            reset = self.state.bind_provider(provider)

        if provider.id != "disabled":
            if health.healthy:
                self._spawn(self.sync.embed_pending())
            else:
                registry.set_degraded(health)

        logger.info("Activated embedding provider %s (%s)", provider.id, provider.model_id)
        return ActivationResult(
            provider_id=provider.id,
            model=provider.model_id,
            healthy=health.healthy,
            vectors_reset=reset,
            warning=REBUILD_WARNING if reset else None,
            message=health.message,
        )

    async def check_provider_health(self) -> HealthResult:
        """Health-check the intended provider again and recover from degraded mode.

        On recovery the provider is re-activated and vector-pending chunks are
        embedded in the background; no full rebuild is needed.
        """
        registry = self.state.registry
        provider = registry.intended
        if provider is None:
            return HealthResult(healthy=False, message="No embedding provider configured")
        health = await provider.health_check()
        if provider.id == "disabled":
            return health

        if not health.healthy:
            registry.set_degraded(health)
            return health

        was_degraded = registry.is_degraded()
        async with self.sync.lock:
            registry.clear_degraded()
            self.state.bind_provider(provider)
        if was_degraded:
            logger.info("Embedding provider %s recovered", provider.id)
        if self.state.repo.count_pending():
            self._spawn(self.sync.embed_pending())
        return health

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _provider_status(self) -> ProviderStatus:
        provider = self.state.registry.intended
        if provider is None:
            return ProviderStatus(id=None, model=None, dimensions=None, state="disabled")
        return ProviderStatus(
            id=provider.id,
            model=provider.model_id,
            dimensions=provider.dimensions(),
            state=provider.state.value,
        )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
