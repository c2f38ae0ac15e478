"""Shared CLI options and Memdex construction."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memdex.cli.errors import err_config, err_no_notebook
from memdex.config import ConfigError, load_config
from memdex.service import Memdex

RootOption = Annotated[
    Path | None,
    typer.Option("--root", "-r", help="Notebook root. Defaults to $MEMDEX_ROOT or the CWD."),
]
DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Index database path. Defaults to <root>/.memdex/index.db."),
]


def open_memdex(console: Console, root: Path | None, db: Path | None = None) -> Memdex:
    """Load config for *root* (CLI flags win) and build a Memdex, or exit 1."""
    if root is None:
        env_root = os.environ.get("MEMDEX_ROOT")
        root = Path(env_root).expanduser() if env_root else Path.cwd()
    root = root.resolve()
    if not root.is_dir():
        console.print(err_no_notebook(root))
        raise typer.Exit(1)

    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    if db is not None:
        cfg.notebook.db_path = db.resolve()
    return Memdex(cfg)
