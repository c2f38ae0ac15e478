"""memdex status / files commands.

status shows index counts, provider state and health; files lists every
indexed file with a stale marker for on-disk drift.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from memdex.cli.common import DbOption, RootOption, open_memdex
from memdex.cli.errors import warn_chunker_changed, warn_degraded
from memdex.service import IndexStatus, Memdex

console = Console()


def status_cmd(
    root: RootOption = None,
    db: DbOption = None,
    check: Annotated[
        bool,
        typer.Option("--check", help="Health-check the embedding provider first."),
    ] = False,
) -> None:
    """Show index status: files, chunks, vectors and provider health."""
    memdex = open_memdex(console, root, db)
    try:
        if check:
            asyncio.run(memdex.check_provider_health())
        st = memdex.status()
        _show_index_panel(memdex, st)
        _show_provider_panel(st)
        if st.degraded is not None:
            console.print(warn_degraded(st.degraded.provider, st.degraded.reason, st.degraded.resolution))
        if st.chunker_changed:
            console.print(warn_chunker_changed())
    finally:
        memdex.state.close()


def files_cmd(
    root: RootOption = None,
    db: DbOption = None,
) -> None:
    """List indexed files with chunk counts and staleness."""
    memdex = open_memdex(console, root, db)
    try:
        files = memdex.files()
    finally:
        memdex.state.close()

    if not files:
        console.print("[dim]No files indexed yet.[/]  Run:  memdex rebuild")
        return

    table = Table(title=f"Indexed files ({len(files)})")
    table.add_column("Path")
    table.add_column("Chunks", justify="right")
    table.add_column("Size", justify="right", style="dim")
    table.add_column("Modified", style="dim")
    table.add_column("State")
    for f in files:
        state = "[yellow]stale[/]" if f.stale else "[green]✓[/]"
        table.add_row(f.path, str(f.chunk_count), f"{f.size_bytes:,} B", f.modified_at[:16], state)
    console.print(table)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_index_panel(memdex: Memdex, st: IndexStatus) -> None:
    health = "[green]✓ healthy[/]" if st.db_healthy else "[red]✗ missing or unusable[/]"
    lines = [
        f"Notebook:  [bold]{memdex.root}[/]",
        f"Database:  {memdex.state.db_path} {health}",
        f"Files: [bold]{st.files_indexed}[/]  |  "
        f"Chunks: [bold]{st.total_chunks:,}[/]  |  "
        f"Vectors: [bold]{st.vectors_stored:,}[/]  |  "
        f"Pending: [bold]{st.vector_pending:,}[/]",
    ]
    if st.last_sync:
        lines.append(f"Last sync: [dim]{st.last_sync[:16]}[/]")
    else:
        lines.append("[dim]Never synced.[/]  Run:  memdex rebuild")
    console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))


def _show_provider_panel(st: IndexStatus) -> None:
    p = st.provider
    dims = str(p.dimensions) if p.dimensions else "?"
    lines = [
        f"Provider:  [bold]{p.id or 'none'}[/]",
        f"Model:     {p.model or '-'}",
        f"Dims:      {dims}",
        f"State:     {p.state}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Embeddings[/]", expand=False))
