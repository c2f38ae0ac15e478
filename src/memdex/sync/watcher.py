"""Filesystem watcher feeding markdown changes into a Debouncer."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from watchfiles import Change, awatch

from memdex.notebook.paths import is_indexable, relative_path
from memdex.sync.debounce import Debouncer

logger = logging.getLogger(__name__)

# watchfiles batches raw events itself; keep that short so the Debouncer
# window is the one that matters.
_RAW_DEBOUNCE_MS = 50


class NotebookWatcher:
    """Watch the notebook root and push changed ``.md`` paths to *debouncer*.

    Dotfiles, dot-directories (including the index directory) and
    non-markdown files are ignored.
    """

    def __init__(self, root: Path, debouncer: Debouncer) -> None:
        self.root = root.resolve()
        self.debouncer = debouncer
        self._stop = asyncio.Event()

    def accepts(self, change: Change, path: str) -> bool:
        rel = relative_path(self.root, path)
        return rel is not None and is_indexable(rel)

    async def run(self) -> None:
        """Consume change events until ``stop()`` is called."""
        logger.info("Watching %s for markdown changes", self.root)
        async for changes in awatch(
            self.root,
            watch_filter=self.accepts,
            stop_event=self._stop,
            debounce=_RAW_DEBOUNCE_MS,
        ):
            for change, path in changes:
                logger.debug("%s %s", change.name, path)
                self.debouncer.add(path)

    def stop(self) -> None:
        self._stop.set()
