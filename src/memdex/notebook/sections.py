"""Heading-aware editing of markdown files.

A section is a heading line plus everything up to the next heading of the same
or a higher level. Headings inside fenced code blocks are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")


@dataclass
class Section:
    """A heading block located by line index (0-based, end exclusive)."""

    level: int
    title: str
    start: int
    end: int


def parse_sections(content: str) -> list[Section]:
    lines = content.split("\n")
    headings: list[tuple[int, int, str]] = []
    in_fence = False
    for i, line in enumerate(lines):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_RE.match(line)
        if match:
            headings.append((i, len(match.group(1)), match.group(2).strip()))

    sections: list[Section] = []
    for n, (start, level, title) in enumerate(headings):
        end = len(lines)
        for later_start, later_level, _ in headings[n + 1:]:
            if later_level <= level:
                end = later_start
                break
        sections.append(Section(level=level, title=title, start=start, end=end))
    return sections


def normalize_heading(section: str) -> tuple[int | None, str]:
    """Split ``"## Title"`` into ``(2, "Title")``; a bare title gives ``(None, title)``."""
    match = _HEADING_RE.match(section.strip())
    if match:
        return len(match.group(1)), match.group(2).strip()
    return None, section.strip()


def find_section(content: str, section: str) -> Section | None:
    """Return the first section whose title (and level, if given) matches."""
    level, title = normalize_heading(section)
    for candidate in parse_sections(content):
        if candidate.title.lower() == title.lower() and level in (None, candidate.level):
            return candidate
    return None


def edit_section(content: str, section: str, text: str, replace: bool = False) -> tuple[str, str]:
    """Write *text* into *section* of *content*.

    The section body is replaced when *replace* is True and appended to
    otherwise. A missing section is added at the end of the document.

    Returns:
        ``(new_content, message)``.
    """
    text = text.strip("\n")
    found = find_section(content, section)
    if found is None:
        level, title = normalize_heading(section)
        heading = f"{'#' * (level or 2)} {title}"
        head = content.rstrip()
        prefix = f"{head}\n\n" if head else ""
        return f"{prefix}{heading}\n\n{text}\n", "Section added"

    lines = content.split("\n")
    body = "\n".join(lines[found.start + 1:found.end]).strip("\n")
    if replace or not body.strip():
        new_body = text
        message = "Section updated" if replace else "Content appended to section"
    else:
        new_body = f"{body}\n{text}"
        message = "Content appended to section"

    rest = "\n".join(lines[found.end:]).strip("\n")
    block = [lines[found.start], ""]
    if new_body:
        block += [new_body, ""]
    before = "\n".join(lines[:found.start])
    parts = [before.rstrip("\n")] if before.strip() else []
    parts.append("\n".join(block).rstrip("\n"))
    if rest:
        parts.append(rest)
    return "\n\n".join(parts) + "\n", message


def section_body(content: str, section: str) -> str | None:
    """Return the text under *section*'s heading, or None if it is absent."""
    found = find_section(content, section)
    if found is None:
        return None
    lines = content.split("\n")
    return "\n".join(lines[found.start + 1:found.end]).strip("\n")


def delete_section(content: str, section: str) -> str | None:
    """Return *content* without *section* (heading and body), or None if absent."""
    found = find_section(content, section)
    if found is None:
        return None
    lines = content.split("\n")
    remaining = "\n".join(lines[:found.start] + lines[found.end:])
    remaining = re.sub(r"\n{3,}", "\n\n", remaining).strip("\n")
    return f"{remaining}\n" if remaining else ""
