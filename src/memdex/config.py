"""memdex configuration loader.

Priority (high → low):
  1. CLI flags              (handled at call site, not in this module)
  2. Environment variables  (MEMDEX_ROOT, MEMDEX_DB, MEMDEX_EMBEDDING_*)
  3. Per-notebook <root>/memdex.yaml
  4. Global ~/.memdex/config.yaml
  5. Hardcoded defaults

Global config must never contain API keys; LiteLLM reads them from the
environment. All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".memdex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_NOTEBOOK_CONFIG_NAME: str = "memdex.yaml"

DEFAULT_DB_RELPATH = Path(".memdex") / "index.db"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or overlap_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # my_secret, client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["notebook", "chunker", "sync", "search", "embeddings", "server"]
)

PROVIDER_IDS: frozenset[str] = frozenset(["disabled", "local", "remote"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class NotebookCfg:
    """Notebook location (memdex.yaml: notebook:).

    Attributes:
        root: Content root holding the markdown files.
        db_path: Index database file; relative paths resolve against ``root``.
    """

    root: Path = field(default_factory=Path.cwd)
    db_path: Path = DEFAULT_DB_RELPATH

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path if self.db_path.is_absolute() else self.root / self.db_path


@dataclass
class ChunkerCfg:
    """Chunk budget in approximate tokens (memdex.yaml: chunker:)."""

    max_tokens: int = 400
    overlap_tokens: int = 80


@dataclass
class SyncCfg:
    """File sync configuration (memdex.yaml: sync:)."""

    debounce_seconds: float = 1.5
    watch: bool = True


@dataclass
class SourceGroup:
    """A logical source category: results from these top-level folders group together."""

    name: str
    folders: list[str] = field(default_factory=list)


def _default_groups() -> list[SourceGroup]:
    return [
        SourceGroup("notebook", ["reference", "lists", "knowledge"]),
        SourceGroup("daily", ["daily"]),
        SourceGroup("sessions", ["sessions"]),
    ]


@dataclass
class SearchCfg:
    """Search configuration (memdex.yaml: search:).

    Attributes:
        groups: Source categories in retrieval priority order.
        default_group: Group for files whose folder matches no group.
    """

    max_results: int = 15
    min_score: float = 0.25
    rrf_k: int = 60
    snippet_chars: int = 200
    groups: list[SourceGroup] = field(default_factory=_default_groups)
    default_group: str = "notebook"


@dataclass
class EmbeddingsCfg:
    """Embedding provider configuration (memdex.yaml: embeddings:).

    Attributes:
        provider: ``disabled``, ``local`` (sentence-transformers) or
            ``remote`` (any LiteLLM embedding model over HTTP).
        model: Model identifier for the chosen provider; None uses the
            provider default.
        api_base: Base URL of the remote model service (e.g. an Ollama host).
    """

    provider: str = "disabled"
    model: str | None = None
    api_base: str | None = None
    timeout_seconds: float = 30.0
    batch_timeout_seconds: float = 60.0
    batch_size: int = 32


@dataclass
class ServerCfg:
    """Admin HTTP server (memdex.yaml: server:)."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class MemdexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    notebook: NotebookCfg = field(default_factory=NotebookCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    sync: SyncCfg = field(default_factory=SyncCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    embeddings: EmbeddingsCfg = field(default_factory=EmbeddingsCfg)
    server: ServerCfg = field(default_factory=ServerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: MemdexConfig) -> None:
    """Raise ConfigError for out-of-range values."""
    if cfg.chunker.max_tokens < 1:
        raise ConfigError("chunker.max_tokens must be >= 1")
    if not 0 <= cfg.chunker.overlap_tokens < cfg.chunker.max_tokens:
        raise ConfigError("chunker.overlap_tokens must be >= 0 and < chunker.max_tokens")
    if cfg.sync.debounce_seconds < 0:
        raise ConfigError("sync.debounce_seconds must be >= 0")
    if cfg.search.rrf_k < 1:
        raise ConfigError("search.rrf_k must be >= 1")
    if cfg.search.max_results < 1:
        raise ConfigError("search.max_results must be >= 1")
    if cfg.embeddings.provider not in PROVIDER_IDS:
        raise ConfigError(
            f"embeddings.provider must be one of {', '.join(sorted(PROVIDER_IDS))}, "
            f"got '{cfg.embeddings.provider}'"
        )
    names = [g.name for g in cfg.search.groups]
    if len(set(names)) != len(names):
        raise ConfigError("search.groups names must be unique")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any], root: Path) -> MemdexConfig:
    """Build a *MemdexConfig* from a merged raw YAML dict."""
    cfg = MemdexConfig(notebook=NotebookCfg(root=root))

    if "notebook" in data:
        n = data["notebook"] or {}
        if n.get("root"):
            cfg.notebook.root = Path(n["root"]).expanduser()
        if n.get("db_path"):
            cfg.notebook.db_path = Path(n["db_path"]).expanduser()

    if "chunker" in data:
        c = data["chunker"] or {}
        cfg.chunker = ChunkerCfg(
            max_tokens=int(c.get("max_tokens", cfg.chunker.max_tokens)),
            overlap_tokens=int(c.get("overlap_tokens", cfg.chunker.overlap_tokens)),
        )

    if "sync" in data:
        s = data["sync"] or {}
        cfg.sync = SyncCfg(
            debounce_seconds=float(s.get("debounce_seconds", cfg.sync.debounce_seconds)),
            watch=bool(s.get("watch", cfg.sync.watch)),
        )

    if "search" in data:
        r = data["search"] or {}
        groups = cfg.search.groups
        if "groups" in r:
            groups = [
                SourceGroup(name=str(g["name"]), folders=[str(f) for f in g.get("folders", [])])
                for g in r["groups"] or []
            ]
        cfg.search = SearchCfg(
            max_results=int(r.get("max_results", cfg.search.max_results)),
            min_score=float(r.get("min_score", cfg.search.min_score)),
            rrf_k=int(r.get("rrf_k", cfg.search.rrf_k)),
            snippet_chars=int(r.get("snippet_chars", cfg.search.snippet_chars)),
            groups=groups,
            default_group=str(r.get("default_group", cfg.search.default_group)),
        )

    if "embeddings" in data:
        e = data["embeddings"] or {}
        cfg.embeddings = EmbeddingsCfg(
            provider=str(e.get("provider", cfg.embeddings.provider)),
            model=e.get("model") or cfg.embeddings.model,
            api_base=e.get("api_base") or cfg.embeddings.api_base,
            timeout_seconds=float(e.get("timeout_seconds", cfg.embeddings.timeout_seconds)),
            batch_timeout_seconds=float(
                e.get("batch_timeout_seconds", cfg.embeddings.batch_timeout_seconds)
            ),
            batch_size=int(e.get("batch_size", cfg.embeddings.batch_size)),
        )

    if "server" in data:
        sv = data["server"] or {}
        cfg.server = ServerCfg(
            host=str(sv.get("host", cfg.server.host)),
            port=int(sv.get("port", cfg.server.port)),
        )

    return cfg


def _apply_env_overrides(cfg: MemdexConfig) -> MemdexConfig:
    """Apply MEMDEX_* environment variable overrides (layer 2)."""
    if db := os.environ.get("MEMDEX_DB"):
        cfg.notebook.db_path = Path(db).expanduser()
    if provider := os.environ.get("MEMDEX_EMBEDDING_PROVIDER"):
        cfg.embeddings.provider = provider
    if model := os.environ.get("MEMDEX_EMBEDDING_MODEL"):
        cfg.embeddings.model = model
    if api_base := os.environ.get("MEMDEX_EMBEDDING_API_BASE"):
        cfg.embeddings.api_base = api_base
    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    root: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MemdexConfig:
    """Load and return a merged *MemdexConfig*.

    Applies layers in order: global → per-notebook → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        root: Notebook root. Defaults to ``$MEMDEX_ROOT`` or the CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *MemdexConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or if a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    if root is None:
        env_root = os.environ.get("MEMDEX_ROOT")
        root = Path(env_root).expanduser() if env_root else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-notebook config
    notebook_cfg_path = root / _NOTEBOOK_CONFIG_NAME
    if notebook_cfg_path.exists():
        raw_notebook = _read_yaml(notebook_cfg_path)
        _warn_unknown_keys(raw_notebook, notebook_cfg_path)
        merged = _deep_merge(merged, raw_notebook)

    cfg = _cfg_from_dict(merged, root)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.memdex/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# memdex global configuration: defaults only.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embeddings:\n"
            "  provider: disabled\n"
            "  model: ollama/nomic-embed-text\n"
            "  # api_base: http://localhost:11434\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
