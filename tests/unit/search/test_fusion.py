"""Tests for Reciprocal Rank Fusion."""

from __future__ import annotations

import pytest

from memdex.search.fusion import RRF_K, rrf_fuse


def test_no_channels():
    assert rrf_fuse({}) == []


def test_top_in_every_channel_scores_one():
    hits = rrf_fuse({"lexical": [7, 8], "vector": [7, 9]})
    assert hits[0].chunk_id == 7
    assert hits[0].score == pytest.approx(1.0)
    assert hits[0].ranks == {"lexical": 1, "vector": 1}


def test_single_channel_is_normalized_to_that_channel():
    hits = rrf_fuse({"lexical": [3, 4]})
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score == pytest.approx((RRF_K + 1) / (RRF_K + 2))


def test_missing_from_a_channel_contributes_nothing():
    hits = {h.chunk_id: h for h in rrf_fuse({"lexical": [1], "vector": [2]})}
    assert hits[1].score == pytest.approx(0.5)
    assert hits[2].score == pytest.approx(0.5)


def test_agreement_beats_single_channel_top():
    hits = rrf_fuse({"lexical": [1, 2], "vector": [3, 2]})
    assert hits[0].chunk_id == 2


def test_empty_queried_channel_still_counts():
    # a vector query that returned nothing halves the best achievable score
    hits = rrf_fuse({"lexical": [5], "vector": []})
    assert hits[0].score == pytest.approx(0.5)


def test_ties_broken_by_best_rank_then_id():
    hits = rrf_fuse({"a": [10, 20], "b": [20, 10]})
    assert [h.chunk_id for h in hits] == [10, 20]


def test_duplicate_ids_in_channel_count_once():
    hits = rrf_fuse({"lexical": [1, 1, 2]})
    assert hits[0].ranks == {"lexical": 1}
    assert hits[0].score == pytest.approx(1.0)


def test_custom_k():
    hits = rrf_fuse({"lexical": [1, 2]}, k=1)
    assert hits[1].score == pytest.approx((1 / 3) / (1 / 2))
