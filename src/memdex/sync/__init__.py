"""memdex sync: keep the index in step with the notebook."""

from memdex.sync.debounce import Debouncer
from memdex.sync.service import SyncResult, SyncService
from memdex.sync.watcher import NotebookWatcher

__all__ = ["Debouncer", "NotebookWatcher", "SyncResult", "SyncService"]
