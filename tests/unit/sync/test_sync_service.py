"""Tests for SyncService: full/incremental sync, rebuild, cache reuse, degradation."""

from __future__ import annotations

import asyncio

import pytest

from memdex.embeddings import HealthResult
from memdex.sync import SyncService

CONTACTS = "# Contacts\n\n## Sarah Chen\n\nPhone: 555-1234\nDentist on Fridays.\n"
DAILY = "# 2026-03-02\n\n- 09:15 Called Sarah about the dentist\n"


@pytest.fixture
def sync(state):
    return SyncService(state)


def _chunk_rows(repo):
    return sorted(
        (c.file_path, c.start_line, c.end_line, c.heading, c.text)
        for f in repo.list_files()
        for c in repo.list_chunks_for_file(f.path)
    )


# ------------------------------------------------------------------
# Full sync
# ------------------------------------------------------------------


def test_full_sync_indexes_markdown(sync, state, notebook, write, fake_provider):
    write(notebook, "reference/contacts.md", CONTACTS)
    write(notebook, "daily/2026-03-02.md", DAILY)

    result = asyncio.run(sync.full_sync())

    assert result.files_scanned == 2
    assert result.files_added == 2
    assert result.errors == []
    repo = state.repo
    assert repo.count_files() == 2
    assert result.chunks_created == repo.count_chunks()
    assert result.embeddings_computed == repo.count_chunks()
    assert repo.count_vectors() == repo.count_chunks()
    assert repo.count_pending() == 0
    assert repo.get_index_meta().dimensions == fake_provider.dims
    assert repo.get_index_meta().last_full_sync_at is not None


def test_full_sync_skips_unchanged_files(sync, notebook, write, fake_provider):
    write(notebook, "reference/contacts.md", CONTACTS)
    asyncio.run(sync.full_sync())
    calls = fake_provider.calls

    result = asyncio.run(sync.full_sync())

    assert result.files_changed == 0
    assert result.chunks_created == 0
    assert fake_provider.calls == calls


def test_hidden_and_non_markdown_files_ignored(sync, state, notebook, write):
    write(notebook, "knowledge/facts.md", "# Facts\n\nWater boils at 100C.\n")
    write(notebook, ".obsidian/workspace.md", "# hidden\n")
    write(notebook, "knowledge/data.txt", "not markdown")

    asyncio.run(sync.full_sync())

    assert [f.path for f in state.repo.list_files()] == ["knowledge/facts.md"]


def test_deleted_file_is_removed(sync, state, notebook, write):
    path = write(notebook, "lists/todos.md", "# Todos\n\n- buy pelican food\n")
    asyncio.run(sync.full_sync())
    path.unlink()

    result = asyncio.run(sync.full_sync())

    assert result.files_removed == 1
    assert state.repo.get_file("lists/todos.md") is None
    assert state.repo.count_chunks() == 0
    assert state.repo.search_fts("pelican") == []


def test_empty_file_indexed_without_chunks(sync, state, notebook, write):
    write(notebook, "knowledge/empty.md", "")
    result = asyncio.run(sync.full_sync())
    assert result.files_added == 1
    assert state.repo.count_chunks() == 0


# ------------------------------------------------------------------
# Rebuild
# ------------------------------------------------------------------


def test_rebuild_is_idempotent(sync, state, notebook, write):
    write(notebook, "reference/contacts.md", CONTACTS)
    write(notebook, "daily/2026-03-02.md", DAILY)
    asyncio.run(sync.rebuild())
    first = _chunk_rows(state.repo)

    asyncio.run(sync.rebuild())

    assert _chunk_rows(state.repo) == first


def test_rebuild_reuses_embedding_cache(sync, state, notebook, write, fake_provider):
    write(notebook, "reference/contacts.md", CONTACTS)
    asyncio.run(sync.rebuild())
    calls = fake_provider.calls
    chunks = state.repo.count_chunks()

    result = asyncio.run(sync.rebuild())

    assert fake_provider.calls == calls
    assert result.embeddings_computed == 0
    assert result.embeddings_cached_hit == chunks
    assert state.repo.count_vectors() == chunks


def test_rebuild_records_chunker_settings(sync, state):
    asyncio.run(sync.rebuild())
    meta = state.repo.get_index_meta()
    assert (meta.chunk_tokens, meta.chunk_overlap) == (400, 80)
    assert state.chunker_changed() is False


def test_rebuild_on_missing_store(sync, state, notebook, write):
    write(notebook, "knowledge/facts.md", "# Facts\n\nSome fact.\n")
    asyncio.run(sync.full_sync())
    state.close()
    state.database.remove_files()

    asyncio.run(sync.rebuild())

    assert state.repo.count_files() == 1


# ------------------------------------------------------------------
# Incremental sync
# ------------------------------------------------------------------


def test_incremental_sync_reembeds_only_changed_chunks(sync, state, notebook, write, fake_provider):
    original = "## Alpha\n\nalpha body stays\n\n## Beta\n\nbeta body v1\n"
    write(notebook, "knowledge/two.md", original)
    asyncio.run(sync.full_sync())
    fake_provider.embedded.clear()

    write(notebook, "knowledge/two.md", original.replace("beta body v1", "beta body v2"))
    result = asyncio.run(sync.incremental_sync(["knowledge/two.md"]))

    assert result.files_updated == 1
    assert result.embeddings_cached_hit == 1
    assert result.embeddings_computed == 1
    assert fake_provider.embedded == ["## Beta\n\nbeta body v2"]
    assert state.repo.count_vectors() == 2


def test_incremental_sync_accepts_absolute_paths(sync, state, notebook, write):
    path = write(notebook, "knowledge/abs.md", "# Abs\n\nbody\n")
    asyncio.run(sync.incremental_sync([str(path)]))
    assert state.repo.get_file("knowledge/abs.md") is not None


def test_incremental_sync_of_missing_file_removes_it(sync, state, notebook, write):
    path = write(notebook, "knowledge/gone.md", "# Gone\n\nsoon\n")
    asyncio.run(sync.full_sync())
    path.unlink()

    result = asyncio.run(sync.incremental_sync(["knowledge/gone.md"]))

    assert result.files_removed == 1
    assert state.repo.count_files() == 0


def test_incremental_sync_ignores_outside_and_hidden(sync, state, tmp_path):
    outside = tmp_path / "elsewhere.md"
    outside.write_text("# Out\n", encoding="utf-8")
    result = asyncio.run(sync.incremental_sync([str(outside), ".memdex/x.md", "notes.txt"]))
    assert result.files_scanned == 0
    assert state.repo.count_files() == 0


def test_incremental_sync_stamps_last_sync(sync, state, notebook, write):
    write(notebook, "knowledge/facts.md", "# Facts\n\nv1\n")
    asyncio.run(sync.full_sync())
    with state.repo.transaction():
        state.repo.set_meta("last_sync_at", "2000-01-01T00:00:00+00:00")
    write(notebook, "knowledge/facts.md", "# Facts\n\nv2\n")

    asyncio.run(sync.incremental_sync(["knowledge/facts.md"]))

    meta = state.repo.get_index_meta()
    assert meta.last_sync_at > "2000-01-01T00:00:00+00:00"
    assert meta.last_sync_at >= meta.last_full_sync_at


# ------------------------------------------------------------------
# Degraded provider
# ------------------------------------------------------------------


def test_sync_without_provider_leaves_chunks_pending(make_state, notebook, write):
    state = make_state(None)
    write(notebook, "reference/contacts.md", CONTACTS)

    result = asyncio.run(SyncService(state).full_sync())

    assert result.errors == []
    assert state.repo.count_chunks() > 0
    assert state.repo.count_pending() == state.repo.count_chunks()
    assert state.repo.count_vectors() == 0


def test_provider_failure_degrades_but_indexes_text(make_state, failing_provider, notebook, write):
    provider = failing_provider
    state = make_state(provider)
    write(notebook, "reference/contacts.md", CONTACTS)
    sync = SyncService(state)

    result = asyncio.run(sync.full_sync())
    assert result.errors == []
    assert state.registry.is_degraded()
    assert state.repo.count_pending() == state.repo.count_chunks() > 0
    assert [cid for cid, _ in state.repo.search_fts("sarah")]

    # provider comes back: pending chunks get vectors without a rebuild
    provider.fail = False
    state.registry.clear_degraded()
    done = asyncio.run(sync.embed_pending())
    assert done == state.repo.count_chunks()
    assert state.repo.count_pending() == 0
    assert state.repo.count_vectors() == done


def test_embed_pending_noop_when_degraded(sync, state):
    state.registry.set_degraded(HealthResult(healthy=False, message="down"))
    assert asyncio.run(sync.embed_pending()) == 0


def test_model_change_clears_vectors(sync, state, notebook, write, new_provider):
    write(notebook, "reference/contacts.md", CONTACTS)
    asyncio.run(sync.full_sync())
    chunks = state.repo.count_chunks()

    assert state.bind_provider(new_provider(model_id="other-model")) is True
    assert state.repo.count_vectors() == 0
    assert state.repo.count_pending() == chunks
    assert state.repo.get_index_meta().model_id == "other-model"
