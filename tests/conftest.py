"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

import pytest

import memdex.config as config_module
from memdex.config import MemdexConfig, NotebookCfg, SyncCfg
from memdex.db import Database, initialize
from memdex.embeddings import DisabledProvider, EmbeddingProvider, HealthResult, ProviderRegistry
from memdex.errors import ProviderUnavailableError
from memdex.notebook import init_notebook
from memdex.service import Memdex
from memdex.state import IndexState


class FakeProvider(EmbeddingProvider):
    """Deterministic bag-of-words embedder. Texts sharing words are similar."""

    id = "fake"

    def __init__(self, dims: int = 32, fail: bool = False, model_id: str = "fake-model") -> None:
        super().__init__(model_id=model_id)
        self.dims = dims
        self.fail = fail
        self.calls = 0
        self.embedded: list[str] = []

    async def health_check(self) -> HealthResult:
        if self.fail:
            return HealthResult(healthy=False, message="fake provider down", resolution="restart it")
        return HealthResult(healthy=True)

    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        if self.fail:
            raise ProviderUnavailableError(self.id, "fake provider down", "restart it")
        self.calls += 1
        self.embedded.extend(texts)
        return [self._vector(t) for t in texts]

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dims
        vec[0] = 0.1
        for word in re.findall(r"\w+", text.lower()):
            slot = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dims
            vec[slot] += 1.0
        return vec


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path, monkeypatch):
    """Never read the real ~/.memdex/config.yaml or MEMDEX_* variables."""
    monkeypatch.setattr(config_module, "_GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    for var in (
        "MEMDEX_ROOT",
        "MEMDEX_DB",
        "MEMDEX_EMBEDDING_PROVIDER",
        "MEMDEX_EMBEDDING_MODEL",
        "MEMDEX_EMBEDDING_API_BASE",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "index.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def notebook(tmp_path) -> Path:
    """An empty notebook root with the standard folders."""
    root = tmp_path / "notebook"
    root.mkdir()
    init_notebook(root)
    return root


def _write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_config(root: Path, **chunker: int) -> MemdexConfig:
    cfg = MemdexConfig(
        notebook=NotebookCfg(root=root, db_path=root.parent / "index" / "index.db"),
        sync=SyncCfg(debounce_seconds=0.2, watch=False),
    )
    for key, value in chunker.items():
        setattr(cfg.chunker, key, value)
    return cfg


def make_registry(provider: EmbeddingProvider | None = None) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(DisabledProvider())
    if provider is not None:
        registry.register(provider)
        registry.set_active(provider.id)
    else:
        registry.set_active("disabled")
    return registry


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def state(notebook, fake_provider):
    st = IndexState(make_config(notebook), make_registry(fake_provider))
    yield st
    st.close()


@pytest.fixture
def memdex(notebook, fake_provider):
    md = Memdex(make_config(notebook), make_registry(fake_provider))
    yield md
    md.state.close()


@pytest.fixture
def failing_provider() -> FakeProvider:
    return FakeProvider(fail=True)


@pytest.fixture
def write():
    """``write(root, rel, content)`` creates a markdown file under *root*."""
    return _write


@pytest.fixture
def make_memdex(notebook):
    """Build a Memdex over the ``notebook`` fixture with a chosen provider."""
    created: list[Memdex] = []

    def _make(provider: EmbeddingProvider | None = None, **chunker: int) -> Memdex:
        md = Memdex(make_config(notebook, **chunker), make_registry(provider))
        created.append(md)
        return md

    yield _make
    for md in created:
        md.state.close()


@pytest.fixture
def new_provider():
    """Factory for extra FakeProvider instances (e.g. failing, other model)."""
    return FakeProvider


@pytest.fixture
def make_state(notebook):
    """Build an IndexState over the ``notebook`` fixture with a chosen provider."""
    created: list[IndexState] = []

    def _make(provider: EmbeddingProvider | None = None) -> IndexState:
        st = IndexState(make_config(notebook), make_registry(provider))
        created.append(st)
        return st

    yield _make
    for st in created:
        st.close()
