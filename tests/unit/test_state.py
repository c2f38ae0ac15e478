"""Tests for IndexState: open-on-demand, recovery, provider binding."""

from __future__ import annotations

import pytest

from memdex.errors import IndexCorruptError


def test_new_store_needs_rebuild(state):
    assert not state.db_path.exists()
    state.ensure_open()
    assert state.db_path.exists()
    assert state.needs_rebuild is True
    assert state.is_healthy()


def test_existing_store_does_not_need_rebuild(state, make_state):
    state.ensure_open()
    state.close()
    again = make_state(None)
    again.ensure_open()
    assert again.needs_rebuild is False


def test_empty_store_file_needs_rebuild(state):
    state.db_path.parent.mkdir(parents=True, exist_ok=True)
    state.db_path.write_bytes(b"")

    state.ensure_open()

    assert state.needs_rebuild is True
    assert state.is_healthy()


def test_corrupt_store_is_recreated(state):
    state.db_path.parent.mkdir(parents=True, exist_ok=True)
    state.db_path.write_bytes(b"garbage" * 1000)

    repo = state.ensure_open()

    assert repo.count_files() == 0
    assert state.needs_rebuild is True
    assert state.is_healthy()


def test_deleted_store_is_recreated(state):
    state.ensure_open()
    state.database.remove_files()

    repo = state.ensure_open()

    assert state.db_path.exists()
    assert repo.count_chunks() == 0


def test_unrecoverable_store_raises(state, monkeypatch):
    import sqlite3

    def _broken():
        raise sqlite3.DatabaseError("disk I/O error")

    monkeypatch.setattr(state, "_open_checked", _broken)
    with pytest.raises(IndexCorruptError):
        state.ensure_open()


def test_is_healthy_false_when_missing(state):
    assert state.is_healthy() is False


def test_bind_provider_records_meta(state, fake_provider):
    assert state.bind_provider(fake_provider) is False
    meta = state.repo.get_index_meta()
    assert (meta.provider_id, meta.model_id) == ("fake", "fake-model")
    # same provider again is a no-op
    assert state.bind_provider(fake_provider) is False


def test_bind_none_clears_meta(state, fake_provider):
    state.bind_provider(fake_provider)
    state.bind_provider(None)
    meta = state.repo.get_index_meta()
    assert meta.provider_id is None
    assert meta.model_id is None


def test_chunker_changed(state):
    assert state.chunker_changed() is False
    with state.repo.transaction() as repo:
        repo.set_meta("chunk_tokens", 100)
        repo.set_meta("chunk_overlap", 10)
    assert state.chunker_changed() is True
