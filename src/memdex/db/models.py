"""Domain models for the memdex database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SourceFile:
    path: str  # POSIX path relative to the notebook root
    content_hash: str
    modified_at: str
    size_bytes: int
    last_indexed_at: str


@dataclass
class Chunk:
    file_path: str
    heading: str | None
    start_line: int
    end_line: int
    text: str
    text_hash: str
    has_vector: bool = False
    created_at: str | None = None
    id: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class IndexMeta:
    """Process-wide index metadata (the ``meta`` table).

    Attributes:
        provider_id: Embedding provider the stored vectors came from.
        model_id: Model the stored vectors came from.
        dimensions: Vector dimensionality of chunks_vec (None = no vector table).
        last_full_sync_at: ISO timestamp of the last completed full sync/rebuild.
        last_sync_at: ISO timestamp of the last sync pass of any kind.
        chunk_tokens: Chunker max token budget used for the stored chunks.
        chunk_overlap: Chunker overlap budget used for the stored chunks.
    """

    provider_id: str | None = None
    model_id: str | None = None
    dimensions: int | None = None
    last_full_sync_at: str | None = None
    last_sync_at: str | None = None
    chunk_tokens: int | None = None
    chunk_overlap: int | None = None
