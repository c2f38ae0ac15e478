"""memdex watch / serve: long-running index maintenance.

watch keeps the index in step with edits until interrupted; serve does the
same behind the admin HTTP API.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from memdex.api import create_app
from memdex.cli.common import DbOption, RootOption, open_memdex
from memdex.cli.errors import warn_degraded
from memdex.service import Memdex

console = Console()


def watch_cmd(
    root: RootOption = None,
    db: DbOption = None,
) -> None:
    """Watch the notebook and re-index changed files (Ctrl+C to stop)."""
    memdex = open_memdex(console, root, db)
    try:
        asyncio.run(_watch(memdex))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/]")


async def _watch(memdex: Memdex) -> None:
    try:
        result = await memdex.start(watch=True)
        console.print(
            f"[green]✓[/] Indexed {result.files_scanned} file(s); "
            f"watching [bold]{memdex.root}[/] (debounce {memdex.debouncer.window:g}s)"
        )
        degraded = memdex.searcher.degraded_info()
        if degraded is not None:
            console.print(warn_degraded(degraded.provider, degraded.reason, degraded.resolution))
        await asyncio.Event().wait()
    finally:
        await memdex.close()


def serve_cmd(
    root: RootOption = None,
    db: DbOption = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address. Defaults to server.host (127.0.0.1)."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port. Defaults to server.port (8765)."),
    ] = None,
) -> None:
    """Serve the admin HTTP API (status, search, files, rebuild, providers)."""
    memdex = open_memdex(console, root, db)
    cfg = memdex.config.server
    uvicorn.run(
        create_app(memdex),
        host=host or cfg.host,
        port=port or cfg.port,
        log_level="warning",
    )
