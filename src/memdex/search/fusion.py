"""Reciprocal Rank Fusion over any number of ranked channels.

    fused(d) = sum over channels of 1 / (k + rank_c(d))     k = 60

A channel that did not return *d* contributes nothing. The fused score is
divided by the best achievable score for the channels actually queried,
``n / (k + 1)``, so a document ranked first everywhere scores 1.0 whether
one channel ran or two.
"""

from __future__ import annotations

from dataclasses import dataclass, field

RRF_K = 60


@dataclass
class FusedHit:
    """A chunk id with its normalized fused score and per-channel ranks.

    Attributes:
        chunk_id: Chunk row id.
        score: Normalized RRF score in (0, 1].
        ranks: 1-based rank per channel name, for channels that returned it.
    """

    chunk_id: int
    score: float
    ranks: dict[str, int] = field(default_factory=dict)


def rrf_fuse(channels: dict[str, list[int]], k: int = RRF_K) -> list[FusedHit]:
    """Fuse ranked id lists, best first.

    Args:
        channels: Channel name to ids in rank order. Include every channel
            that was queried, even if it came back empty.
        k: RRF damping constant.
    """
    if not channels:
        return []

    hits: dict[int, FusedHit] = {}
    raw: dict[int, float] = {}
    for name, ids in channels.items():
        for rank, chunk_id in enumerate(ids, start=1):
            if chunk_id in hits and name in hits[chunk_id].ranks:
                continue
            hit = hits.setdefault(chunk_id, FusedHit(chunk_id=chunk_id, score=0.0))
            hit.ranks[name] = rank
            raw[chunk_id] = raw.get(chunk_id, 0.0) + 1.0 / (k + rank)

    best = len(channels) / (k + 1)
    for chunk_id, hit in hits.items():
        hit.score = raw[chunk_id] / best

    # ties broken by best single-channel rank, then id, for stable output
    return sorted(hits.values(), key=lambda h: (-h.score, min(h.ranks.values()), h.chunk_id))
