"""Agent-facing notebook operations: point read, write, section delete, daily log.

These functions touch only the markdown under the root. Keeping the index
in step is the caller's job (``Memdex`` schedules a sync after each write).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from memdex.errors import NotFoundError
from memdex.notebook.paths import MARKDOWN_SUFFIX, is_indexable, resolve_path
from memdex.notebook.sections import delete_section, edit_section, section_body

DAILY_FOLDER = "daily"


@dataclass
class WriteResult:
    success: bool
    path: str
    message: str


def read_note(
    root: Path,
    path: str,
    start_line: int | None = None,
    line_count: int | None = None,
    section: str | None = None,
) -> str:
    """Return the content of *path*, optionally a 1-based line range.

    With *section*, only the body under that heading is returned and the line
    range applies within it.

    Raises:
        PathEscapeError: If *path* resolves outside *root*.
        NotFoundError: If the file (or the section) does not exist.
        ValueError: If the line range is invalid.
    """
    target = resolve_path(root, path)
    if not target.is_file():
        raise NotFoundError(path)
    content = target.read_text(encoding="utf-8")
    if section:
        body = section_body(content, section)
        if body is None:
            raise NotFoundError(path, section=section)
        content = body
    if start_line is None and line_count is None:
        return content

    if start_line is not None and start_line < 1:
        raise ValueError("start_line must be >= 1")
    if line_count is not None and line_count < 0:
        raise ValueError("line_count must be >= 0")
    lines = content.split("\n")
    start = (start_line or 1) - 1
    end = len(lines) if line_count is None else start + line_count
    return "\n".join(lines[start:end])


def write_note(
    root: Path,
    path: str,
    content: str,
    section: str | None = None,
    replace: bool = False,
) -> WriteResult:
    """Write *content* to the markdown file at *path*.

    With *section*, the heading block is appended to (or replaced when
    *replace* is set), and added at the end if the file lacks it. Without a
    section, *replace* overwrites the whole file and otherwise the content is
    appended. Missing files and parent directories are created.

    Raises:
        PathEscapeError: If *path* resolves outside *root*.
    """
    target = resolve_path(root, path)
    if target.suffix != MARKDOWN_SUFFIX:
        return WriteResult(False, path, f"Only markdown ({MARKDOWN_SUFFIX}) files can be written")
    if not is_indexable(_rel(root, target)):
        return WriteResult(False, path, "Hidden files and folders are not part of the notebook")

    existing = target.read_text(encoding="utf-8") if target.is_file() else None
    if section:
        new_content, message = edit_section(existing or "", section, content, replace=replace)
    elif replace or existing is None:
        new_content = content if content.endswith("\n") else f"{content}\n"
        message = "File written" if existing is None else "File replaced"
    else:
        body = existing.rstrip("\n")
        addition = content.strip("\n")
        new_content = f"{body}\n{addition}\n" if body else f"{addition}\n"
        message = "Content appended"

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(new_content, encoding="utf-8")
    return WriteResult(True, _rel(root, target), message)


def delete_note_section(root: Path, path: str, section: str) -> WriteResult:
    """Remove *section* (its heading and body) from the file at *path*.

    Raises:
        PathEscapeError: If *path* resolves outside *root*.
        NotFoundError: If the file does not exist.
    """
    target = resolve_path(root, path)
    if not target.is_file():
        raise NotFoundError(path)
    new_content = delete_section(target.read_text(encoding="utf-8"), section)
    if new_content is None:
        return WriteResult(False, _rel(root, target), f"Section not found: {section}")
    target.write_text(new_content, encoding="utf-8")
    return WriteResult(True, _rel(root, target), "Section deleted")


def append_daily_entry(root: Path, text: str, now: datetime | None = None) -> str:
    """Append ``- HH:MM text`` to today's ``daily/YYYY-MM-DD.md``.

    Returns:
        The notebook-relative path of the daily file.
    """
    now = now or datetime.now()
    day = now.strftime("%Y-%m-%d")
    rel = f"{DAILY_FOLDER}/{day}{MARKDOWN_SUFFIX}"
    target = resolve_path(root, rel)
    entry = f"- {now.strftime('%H:%M')} {' '.join(text.split())}"

    if target.is_file():
        body = target.read_text(encoding="utf-8").rstrip("\n")
        new_content = f"{body}\n{entry}\n"
    else:
        new_content = f"# {day}\n\n{entry}\n"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(new_content, encoding="utf-8")
    return rel


def _rel(root: Path, target: Path) -> str:
    return target.relative_to(root.resolve()).as_posix()
