"""memdex ingest: markdown chunking and hashing."""

from memdex.ingest.base import BaseChunker, ChunkDraft, hash_bytes, hash_text
from memdex.ingest.markdown import MarkdownChunker, chunk_markdown

__all__ = [
    "BaseChunker",
    "ChunkDraft",
    "MarkdownChunker",
    "chunk_markdown",
    "hash_bytes",
    "hash_text",
]
