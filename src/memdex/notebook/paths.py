"""Path safety and discovery for the notebook root."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path, PurePosixPath

from memdex.errors import PathEscapeError

MARKDOWN_SUFFIX = ".md"


def resolve_path(root: Path, path: str) -> Path:
    """Resolve *path* (relative to *root*) and check it stays inside the root.

    Absolute paths, ``..`` traversal and symlinks pointing outside are all
    rejected; the path is never clamped to the root.

    Raises:
        PathEscapeError: If the resolved path is outside *root*.
    """
    if not path or PurePosixPath(path).is_absolute() or Path(path).is_absolute():
        raise PathEscapeError(path)
    root = root.resolve()
    target = (root / path).resolve()
    if target != root and root not in target.parents:
        raise PathEscapeError(path)
    return target


def relative_path(root: Path, path: str | Path) -> str | None:
    """Return *path* as a POSIX path relative to *root*, or None if outside it."""
    root = root.resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    try:
        return candidate.resolve().relative_to(root).as_posix()
    except ValueError:
        return None


def is_indexable(rel_path: str) -> bool:
    """True for ``.md`` files with no hidden (dot-prefixed) path component."""
    parts = PurePosixPath(rel_path).parts
    if not parts or any(p.startswith(".") for p in parts):
        return False
    return rel_path.endswith(MARKDOWN_SUFFIX)


def iter_markdown_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_posix_path, absolute_path)`` for each indexable file, sorted."""
    root = root.resolve()
    for path in sorted(root.rglob(f"*{MARKDOWN_SUFFIX}")):
        rel = path.relative_to(root).as_posix()
        if not is_indexable(rel) or not path.is_file():
            continue
        # symlinks that lead out of the root are not part of the notebook
        resolved = path.resolve()
        if root in resolved.parents:
            yield rel, path
