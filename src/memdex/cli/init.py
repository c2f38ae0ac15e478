"""memdex init: scaffold a notebook and create its index.

Creates:
  reference/ lists/ knowledge/ daily/     purpose-based note folders
  starter notes                           contacts, preferences, standing orders,
                                          todos, facts (never overwritten)
  .memdex/index.db                        empty index with schema
  ~/.memdex/config.yaml                   global config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memdex.cli.errors import err_config
from memdex.config import ConfigError, ensure_global_config, load_config
from memdex.db import Database, initialize
from memdex.notebook import create_starter_notebook, init_notebook

console = Console()

_DEFAULT_ROOT = Path(".")


def init_cmd(
    root: Annotated[
        Path,
        typer.Argument(help="Notebook directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_ROOT,
    starter: Annotated[
        bool,
        typer.Option("--starter/--no-starter", help="Write starter notes."),
    ] = True,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a notebook: folders, starter notes and an empty index."""
    root = root.resolve()
    root.mkdir(parents=True, exist_ok=True)

    try:
        cfg = load_config(root, global_config_path=global_config)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    console.print(f"\n[bold]Creating notebook in {root} …[/]\n")

    for path in init_notebook(root):
        console.print(f"  [green]✓[/] {path.relative_to(root)}/")

    if starter:
        for rel in create_starter_notebook(root):
            console.print(f"  [green]✓[/] {rel}")

    db_path = cfg.notebook.resolved_db_path
    with Database(db_path) as conn:
        initialize(conn)
    console.print(f"  [green]✓[/] {db_path}")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\n[bold green]✓ Notebook initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. memdex rebuild            (index the notebook)")
    console.print("  2. memdex search \"<query>\"   (find notes)")
    console.print("  3. memdex watch              (keep the index in sync while you edit)")
