"""memdex search: hybrid lexical + vector retrieval."""

from memdex.search.fusion import RRF_K, FusedHit, rrf_fuse
from memdex.search.service import (
    DegradedInfo,
    SearchResponse,
    SearchResult,
    SearchService,
    extract_snippet,
    format_results,
)

__all__ = [
    "RRF_K",
    "DegradedInfo",
    "FusedHit",
    "SearchResponse",
    "SearchResult",
    "SearchService",
    "extract_snippet",
    "format_results",
    "rrf_fuse",
]
