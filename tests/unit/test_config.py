"""Tests for the memdex config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from memdex.config import (
    DEFAULT_DB_RELPATH,
    ConfigError,
    MemdexConfig,
    ensure_global_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


def _missing(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(tmp_path, global_config_path=_missing(tmp_path))

    assert isinstance(cfg, MemdexConfig)
    assert cfg.notebook.root == tmp_path
    assert cfg.notebook.resolved_db_path == tmp_path / DEFAULT_DB_RELPATH
    assert cfg.chunker.max_tokens == 400
    assert cfg.chunker.overlap_tokens == 80
    assert cfg.sync.debounce_seconds == 1.5
    assert cfg.search.max_results == 15
    assert cfg.search.min_score == 0.25
    assert cfg.search.rrf_k == 60
    assert [g.name for g in cfg.search.groups] == ["notebook", "daily", "sessions"]
    assert cfg.embeddings.provider == "disabled"
    assert cfg.embeddings.model is None
    assert cfg.server.port == 8765


def test_root_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEMDEX_ROOT", str(tmp_path))
    cfg = load_config(global_config_path=_missing(tmp_path))
    assert cfg.notebook.root == tmp_path


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"embeddings": {"provider": "remote", "model": "ollama/nomic-embed-text"}})

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.embeddings.provider == "remote"
    assert cfg.embeddings.model == "ollama/nomic-embed-text"


def test_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    global_cfg.write_text("", encoding="utf-8")
    cfg = load_config(tmp_path, global_config_path=global_cfg)
    assert cfg.embeddings.provider == "disabled"


def test_notebook_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"embeddings": {"provider": "remote", "model": "ollama/a"}})
    _write_yaml(tmp_path / "memdex.yaml", {"embeddings": {"model": "ollama/b"}})

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.embeddings.provider == "remote"
    assert cfg.embeddings.model == "ollama/b"


def test_notebook_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "memdex.yaml",
        {
            "notebook": {"db_path": "/var/cache/memdex.db"},
            "chunker": {"max_tokens": 200, "overlap_tokens": 20},
            "sync": {"debounce_seconds": 0.5, "watch": False},
            "search": {
                "max_results": 5,
                "groups": [{"name": "people", "folders": ["contacts"]}],
                "default_group": "other",
            },
            "server": {"port": 9000},
        },
    )

    cfg = load_config(tmp_path, global_config_path=_missing(tmp_path))

    assert cfg.notebook.resolved_db_path == Path("/var/cache/memdex.db")
    assert (cfg.chunker.max_tokens, cfg.chunker.overlap_tokens) == (200, 20)
    assert cfg.sync.watch is False
    assert cfg.search.max_results == 5
    assert [(g.name, g.folders) for g in cfg.search.groups] == [("people", ["contacts"])]
    assert cfg.search.default_group == "other"
    assert cfg.server.port == 9000


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    (tmp_path / "memdex.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, global_config_path=_missing(tmp_path))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "data",
    [
        {"chunker": {"max_tokens": 0}},
        {"chunker": {"max_tokens": 100, "overlap_tokens": 100}},
        {"search": {"rrf_k": 0}},
        {"embeddings": {"provider": "quantum"}},
        {"search": {"groups": [{"name": "a"}, {"name": "a"}]}},
    ],
)
def test_invalid_values_raise(tmp_path: Path, data: dict) -> None:
    _write_yaml(tmp_path / "memdex.yaml", data)
    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config_path=_missing(tmp_path))


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "OPENAI_API_KEY", "secret", "password", "token", "api-key"],
)
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    """Global config containing API key-like field names raises ConfigError."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(tmp_path, global_config_path=global_cfg)


def test_global_config_rejects_nested_api_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embeddings": {"api_key": "sk-secret"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(tmp_path, global_config_path=global_cfg)


def test_token_budget_keys_are_not_api_keys(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"chunker": {"max_tokens": 300, "overlap_tokens": 30}})
    cfg = load_config(tmp_path, global_config_path=global_cfg)
    assert cfg.chunker.max_tokens == 300


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memdex.yaml", {"unknown_section": {"foo": "bar"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = load_config(tmp_path, global_config_path=_missing(tmp_path))

    assert any("unknown_section" in str(w.message) for w in caught)
    assert cfg.embeddings.provider == "disabled"


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "memdex.yaml", {"embeddings": {"provider": "disabled"}})
    monkeypatch.setenv("MEMDEX_EMBEDDING_PROVIDER", "remote")
    monkeypatch.setenv("MEMDEX_EMBEDDING_MODEL", "ollama/nomic-embed-text")
    monkeypatch.setenv("MEMDEX_EMBEDDING_API_BASE", "http://localhost:11434")
    monkeypatch.setenv("MEMDEX_DB", str(tmp_path / "elsewhere.db"))

    cfg = load_config(tmp_path, global_config_path=_missing(tmp_path))

    assert cfg.embeddings.provider == "remote"
    assert cfg.embeddings.model == "ollama/nomic-embed-text"
    assert cfg.embeddings.api_base == "http://localhost:11434"
    assert cfg.notebook.resolved_db_path == tmp_path / "elsewhere.db"


def test_env_provider_is_validated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEMDEX_EMBEDDING_PROVIDER", "nope")
    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config_path=_missing(tmp_path))


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".memdex" / "config.yaml"
    result = ensure_global_config(global_config_path=target)

    assert result == target
    parsed = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert parsed["embeddings"]["provider"] == "disabled"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / ".memdex" / "config.yaml"
    ensure_global_config(global_config_path=target)
    target.write_text("# custom\nembeddings:\n  provider: local\n", encoding="utf-8")

    ensure_global_config(global_config_path=target)

    assert "provider: local" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(global_config_path=tmp_path / ".memdex" / "config.yaml")
    cfg = load_config(tmp_path, global_config_path=target)
    assert cfg.embeddings.provider == "disabled"


def test_config_does_not_execute_yaml_load(tmp_path: Path) -> None:
    """Config loader uses safe_load; python object tags are rejected."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("!!python/object/apply:os.system ['echo pwned']\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        load_config(tmp_path, global_config_path=global_cfg)
