"""Exception hierarchy for memdex.

Reads and status never raise on index problems; they degrade and report.
Writes fail immediately on invalid paths.
"""

from __future__ import annotations


class MemdexError(Exception):
    """Base class for all memdex errors."""


class NotFoundError(MemdexError, LookupError):
    """Requested notebook path (or a section within it) does not exist."""

    def __init__(self, path: str, section: str | None = None) -> None:
        if section is None:
            super().__init__(f"File not found: {path}")
        else:
            super().__init__(f"Section not found: {section} in {path}")
        self.path = path
        self.section = section


class PathEscapeError(MemdexError, ValueError):
    """Requested path resolves outside the notebook root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path must be within the notebook root: {path}")
        self.path = path


class ProviderUnavailableError(MemdexError):
    """The embedding provider failed a call or a health check.

    Never fatal: sync continues lexical-only and search flags degraded results.
    """

    def __init__(self, provider_id: str, message: str, resolution: str | None = None) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message
        self.resolution = resolution


class IndexCorruptError(MemdexError):
    """The index store could not be recreated after a storage-level failure."""
