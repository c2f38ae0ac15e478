"""memdex rebuild: discard the index and re-index every file.

Safe at any time: the markdown is never touched, and the embedding cache
survives, so unchanged text is not re-embedded.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from memdex.cli.common import DbOption, RootOption, open_memdex
from memdex.cli.errors import err_index_corrupt, warn_degraded
from memdex.errors import IndexCorruptError
from memdex.service import Memdex
from memdex.sync import SyncResult

console = Console()


def rebuild_cmd(
    root: RootOption = None,
    db: DbOption = None,
) -> None:
    """Rebuild the index from the markdown files."""
    memdex = open_memdex(console, root, db)
    console.print(f"Rebuilding index for [bold]{memdex.root}[/] …")
    try:
        result = asyncio.run(_run(memdex))
    except IndexCorruptError as exc:
        console.print(err_index_corrupt(memdex.state.db_path, str(exc)))
        raise typer.Exit(1) from exc

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Files scanned", str(result.files_scanned))
    table.add_row("Files indexed", str(result.files_changed))
    table.add_row("Chunks", f"{result.chunks_created:,}")
    table.add_row("Embeddings computed", f"{result.embeddings_computed:,}")
    table.add_row("Embeddings from cache", f"{result.embeddings_cached_hit:,}")
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f}s")
    console.print(table)

    degraded = memdex.searcher.degraded_info()
    if degraded is not None:
        console.print(warn_degraded(degraded.provider, degraded.reason, degraded.resolution))

    if result.errors:
        console.print(f"\n[yellow]⚠[/]  {len(result.errors)} file(s) failed:")
        for err in result.errors:
            console.print(f"  [dim]{err}[/]")
        raise typer.Exit(1)

    console.print("\n[green]✓[/] Index rebuilt.")


async def _run(memdex: Memdex) -> SyncResult:
    try:
        await memdex.check_provider_health()
        return await memdex.rebuild()
    finally:
        await memdex.close()
