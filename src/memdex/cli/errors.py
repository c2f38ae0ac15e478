"""memdex rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from memdex.cli.errors import err_no_notebook
    console.print(err_no_notebook(root))
    raise typer.Exit(1)
"""

from __future__ import annotations

from pathlib import Path


def err_no_notebook(root: Path) -> str:
    """Notebook root does not exist or is not a directory."""
    return (
        f"[red]Error:[/] No notebook found at '{root}'.\n"
        f"  Run:  memdex init {root}"
    )


def err_config(message: str) -> str:
    """Invalid memdex.yaml or global config."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix memdex.yaml (or ~/.memdex/config.yaml) and retry."
    )


def err_index_corrupt(db_path: Path, detail: str) -> str:
    """Index could not be recreated."""
    return (
        f"[red]Error:[/] Index database '{db_path}' is unusable and could not be recreated.\n"
        f"  {detail}\n"
        f"  Check permissions on {db_path.parent}, then run:  memdex rebuild"
    )


def err_unknown_source(name: str, known: list[str]) -> str:
    """--sources names a group that is not configured."""
    return (
        f"[red]Error:[/] Unknown source group '{name}'.\n"
        f"  Use one of: {', '.join(known)}"
    )


def warn_degraded(provider: str, reason: str, resolution: str | None = None) -> str:
    """Embedding provider unavailable; results are keyword-only."""
    lines = [
        f"[yellow]Warning:[/] Semantic search unavailable ({provider}): {reason}",
        "  Results are keyword matches only.",
    ]
    if resolution:
        lines.append(f"  Fix:  {resolution}")
    return "\n".join(lines)


def warn_chunker_changed() -> str:
    """Index was built with different chunker settings."""
    return (
        "[yellow]Warning:[/] Chunker settings changed since the last rebuild.\n"
        "  Run:  memdex rebuild"
    )
