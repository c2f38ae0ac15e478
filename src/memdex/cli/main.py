"""memdex CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from memdex.cli.init import init_cmd
from memdex.cli.rebuild import rebuild_cmd
from memdex.cli.search import search_cmd
from memdex.cli.status import files_cmd, status_cmd
from memdex.cli.watch import serve_cmd, watch_cmd
from memdex.logging_config import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("memdex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memdex {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="memdex",
    help=(
        "memdex: searchable index over a markdown notebook.\n\n"
        "  memdex search  Keyword + semantic search, grouped by source.\n"
        "  memdex watch   Keep the index in sync while you edit."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """memdex: searchable index over a markdown notebook."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("files")(files_cmd)
app.command("search")(search_cmd)
app.command("rebuild")(rebuild_cmd)
app.command("watch")(watch_cmd)
app.command("serve")(serve_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed memdex version."""
    typer.echo(f"memdex {_installed_version()}")


if __name__ == "__main__":
    app()
