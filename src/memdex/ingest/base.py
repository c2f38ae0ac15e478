"""Chunker base: token budgeting, hashing, and the chunk draft type."""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

CHARS_PER_TOKEN = 4


def hash_text(text: str) -> str:
    """SHA-256 hex digest of *text* (UTF-8). Keys the embedding cache."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest of raw file bytes. Used for change detection."""
    return hashlib.sha256(data).hexdigest()


@dataclass
class ChunkDraft:
    """An unsaved chunk produced by a chunker.

    Attributes:
        text: Chunk text, including any overlap carried from the previous chunk.
        heading: Nearest H1/H2 heading above the chunk, or None for preamble.
        start_line: 1-based first line of the chunk's own content.
        end_line: 1-based last line (inclusive) of the chunk's own content.
        text_hash: SHA-256 of ``text``.
    """

    text: str
    heading: str | None
    start_line: int
    end_line: int
    text_hash: str = field(default="")

    def __post_init__(self) -> None:
        if not self.text_hash:
            self.text_hash = hash_text(self.text)


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Token counting uses a 4-chars-per-token approximation; no external
    tokenizer dependency is required.
    """

    def __init__(self, max_tokens: int = 400, overlap_tokens: int = 80) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if not 0 <= overlap_tokens < max_tokens:
            raise ValueError("overlap_tokens must be in [0, max_tokens)")
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens

    @property
    def max_chars(self) -> int:
        return self.max_tokens * CHARS_PER_TOKEN

    @property
    def overlap_chars(self) -> int:
        return self.overlap_tokens * CHARS_PER_TOKEN

    @abstractmethod
    def chunk(self, content: str) -> list[ChunkDraft]:
        """Split *content* into ordered ChunkDrafts."""

    def _tail(self, text: str) -> str:
        """Return the trailing overlap budget of *text*, cut at a word boundary."""
        limit = self.overlap_chars
        if limit <= 0:
            return ""
        if len(text) <= limit:
            return text.strip()
        tail = text[-limit:]
        boundary = re.search(r"\s", tail)
        if boundary and boundary.end() < len(tail):
            tail = tail[boundary.end():]
        return tail.strip()
