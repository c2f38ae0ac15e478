"""Hybrid search: FTS5 (BM25) + sqlite-vec cosine KNN, fused via RRF.

The lexical and vector queries run concurrently. If no provider is ready, or
the vector query fails, results are lexical-only and the response carries a
``degraded`` indicator; search itself never raises on provider trouble.

Results are grouped by source category in configured priority order, never
sorted across groups.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from memdex.db import Repository
from memdex.embeddings import HealthResult
from memdex.errors import ProviderUnavailableError
from memdex.search.fusion import FusedHit, rrf_fuse
from memdex.state import IndexState

logger = logging.getLogger(__name__)

_ELLIPSIS = "..."
_SNIPPET_LEAD = 30


@dataclass
class SearchResult:
    path: str
    heading: str | None
    snippet: str
    score: float
    start_line: int
    end_line: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "heading": self.heading,
            "snippet": self.snippet,
            "score": round(self.score, 4),
            "lines": {"start": self.start_line, "end": self.end_line},
        }


@dataclass
class DegradedInfo:
    """Why semantic search is unavailable and what to do about it."""

    provider: str
    reason: str
    resolution: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"provider": self.provider, "reason": self.reason}
        if self.resolution:
            data["resolution"] = self.resolution
        return data


@dataclass
class SearchResponse:
    """Search results grouped by source category.

    Attributes:
        groups: Group name to results, in priority order. Every searched
            group is present, possibly empty.
        degraded: Set when results are lexical-only because the embedding
            provider is unavailable.
    """

    groups: dict[str, list[SearchResult]] = field(default_factory=dict)
    degraded: DegradedInfo | None = None

    @property
    def results(self) -> list[SearchResult]:
        return [r for group in self.groups.values() for r in group]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            name: [r.to_dict() for r in results] for name, results in self.groups.items()
        }
        if self.degraded is not None:
            data["degraded"] = self.degraded.to_dict()
        return data


class SearchService:
    """Runs queries against the index owned by an IndexState."""

    def __init__(self, state: IndexState) -> None:
        self._state = state
        self._cfg = state.config.search
        self._folder_groups: dict[str, str] = {
            folder.strip("/"): group.name for group in self._cfg.groups for folder in group.folders
        }

    @property
    def group_names(self) -> list[str]:
        names = [g.name for g in self._cfg.groups]
        if self._cfg.default_group not in names:
            names.append(self._cfg.default_group)
        return names

    def group_for(self, path: str) -> str:
        """Return the source group for a notebook-relative *path*."""
        parts = PurePosixPath(path).parts
        if len(parts) > 1 and parts[0] in self._folder_groups:
            return self._folder_groups[parts[0]]
        return self._cfg.default_group

    async def search(
        self,
        query: str,
        sources: list[str] | None = None,
        max_results: int | None = None,
        min_score: float | None = None,
    ) -> SearchResponse:
        """Search the index.

        Args:
            query: Free-text query.
            sources: Restrict results to these group names.
            max_results: Cap on results across all groups.
            min_score: Drop results whose normalized fused score is lower.

        Returns:
            A SearchResponse; empty when the query has no searchable terms.
        """
        max_results = max_results if max_results is not None else self._cfg.max_results
        min_score = min_score if min_score is not None else self._cfg.min_score
        wanted = [g for g in self.group_names if not sources or g in sources]
        response = SearchResponse(groups={name: [] for name in wanted})

        if not query.strip() or max_results < 1 or not wanted:
            response.degraded = self.degraded_info()
            return response

        repo = self._state.ensure_open()
        limit = max_results * 2
        provider = self._state.registry.ready_provider()

        async def lexical() -> list[int]:
            return [chunk_id for chunk_id, _ in repo.search_fts(query, limit=limit)]

        async def vector() -> list[int] | None:
            if provider is None:
                return None
            try:
                embedding = await provider.embed(query)
            except ProviderUnavailableError as exc:
                self._state.registry.set_degraded(
                    HealthResult(healthy=False, message=exc.message, resolution=exc.resolution)
                )
                return None
            try:
                return [chunk_id for chunk_id, _ in repo.search_vec(embedding, limit=limit)]
            except sqlite3.OperationalError as exc:
                # e.g. query vector size differs from the stored vectors
                logger.warning("Vector search failed, using lexical results only: %s", exc)
                return None

        lexical_ids, vector_ids = await asyncio.gather(lexical(), vector())
        channels: dict[str, list[int]] = {"lexical": lexical_ids}
        if vector_ids is not None:
            channels["vector"] = vector_ids

        hits = rrf_fuse(channels, k=self._cfg.rrf_k)
        for result in self._collect(repo, query, hits, wanted, max_results, min_score):
            response.groups[self.group_for(result.path)].append(result)
        for results in response.groups.values():
            results.sort(key=lambda r: r.score, reverse=True)

        response.degraded = self.degraded_info()
        logger.debug(
            "Search %r: %d result(s) via %s", query, len(response.results), "+".join(channels)
        )
        return response

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collect(
        self,
        repo: Repository,
        query: str,
        hits: list[FusedHit],
        wanted: list[str],
        max_results: int,
        min_score: float,
    ) -> list[SearchResult]:
        chunks = repo.get_chunks([h.chunk_id for h in hits])
        results: list[SearchResult] = []
        for hit in hits:
            if hit.score < min_score:
                break
            chunk = chunks.get(hit.chunk_id)
            if chunk is None or self.group_for(chunk.file_path) not in wanted:
                continue
            results.append(
                SearchResult(
                    path=chunk.file_path,
                    heading=chunk.heading,
                    snippet=extract_snippet(chunk.text, query, self._cfg.snippet_chars),
                    score=hit.score,
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                )
            )
            if len(results) >= max_results:
                break
        return results

    def degraded_info(self) -> DegradedInfo | None:
        health = self._state.registry.degraded_health
        if health is None:
            return None
        return DegradedInfo(
            provider=self._state.registry.intended_id or "unknown",
            reason=health.message or "Embedding provider unavailable",
            resolution=health.resolution,
        )


def extract_snippet(text: str, query: str, max_chars: int = 200) -> str:
    """Return at most *max_chars* of *text* around the first query term.

    The window starts a little before the first matching term; ``...`` marks
    text cut at either end.
    """
    flat = " ".join(text.split())
    lowered = flat.lower()
    start = 0
    for term in re.sub(r"[^\w\s]", " ", query).lower().split():
        index = lowered.find(term)
        if index != -1:
            start = max(0, index - _SNIPPET_LEAD)
            break

    if len(flat) <= max_chars:
        return flat

    budget = max_chars
    lead = _ELLIPSIS if start > 0 else ""
    budget -= len(lead)
    tail = _ELLIPSIS if start + budget < len(flat) else ""
    budget -= len(tail)
    return f"{lead}{flat[start:start + budget].strip()}{tail}"


def format_results(response: SearchResponse) -> str:
    """Render grouped results as plain text for an agent."""
    lines: list[str] = []
    for name, results in response.groups.items():
        if not results:
            continue
        if lines:
            lines.append("")
        lines.append(f"{name.upper()} ({len(results)} results)")
        for r in results:
            heading = f" > {r.heading}" if r.heading else ""
            lines.append(f"  {r.path}:{r.start_line}{heading} [{r.score:.2f}]")
            lines.append(f'    "{r.snippet}"')

    if not lines:
        lines.append("No results found.")
    if response.degraded is not None:
        lines.append("")
        lines.append(f"(keyword results only: {response.degraded.reason})")
    return "\n".join(lines)
