"""memdex search: query the notebook from the command line.

Brings the index up to date first (unchanged files are skipped by hash), then
prints grouped results, or JSON with ``--json``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Annotated

import typer
from rich.console import Console

from memdex.cli.common import DbOption, RootOption, open_memdex
from memdex.cli.errors import err_index_corrupt, err_unknown_source, warn_degraded
from memdex.errors import IndexCorruptError
from memdex.search import SearchResponse, format_results
from memdex.service import Memdex

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Free-text query.")],
    root: RootOption = None,
    db: DbOption = None,
    sources: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Restrict to a source group (repeatable)."),
    ] = None,
    max_results: Annotated[
        int | None,
        typer.Option("--max-results", "-n", min=1, help="Maximum results across groups."),
    ] = None,
    min_score: Annotated[
        float | None,
        typer.Option("--min-score", min=0.0, max=1.0, help="Minimum normalized score."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw JSON response."),
    ] = False,
    sync: Annotated[
        bool,
        typer.Option("--sync/--no-sync", help="Sync changed files before searching."),
    ] = True,
) -> None:
    """Search the notebook (keyword + semantic, grouped by source)."""
    memdex = open_memdex(console, root, db)

    known = memdex.searcher.group_names
    for name in sources or []:
        if name not in known:
            console.print(err_unknown_source(name, known))
            raise typer.Exit(1)

    try:
        response = asyncio.run(_run(memdex, query, sources, max_results, min_score, sync))
    except IndexCorruptError as exc:
        console.print(err_index_corrupt(memdex.state.db_path, str(exc)))
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2))
        return

    if response.degraded is not None:
        d = response.degraded
        console.print(warn_degraded(d.provider, d.reason, d.resolution))
        response.degraded = None
    console.print(format_results(response), markup=False, highlight=False)


async def _run(
    memdex: Memdex,
    query: str,
    sources: list[str] | None,
    max_results: int | None,
    min_score: float | None,
    sync: bool,
) -> SearchResponse:
    try:
        if sync:
            memdex.state.ensure_open()
            if not memdex.state.needs_rebuild:
                await memdex.full_sync()
        return await memdex.search(
            query, sources=sources or None, max_results=max_results, min_score=min_score
        )
    finally:
        await memdex.close()
