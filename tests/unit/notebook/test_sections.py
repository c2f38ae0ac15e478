"""Tests for heading-aware section editing."""

from __future__ import annotations

from memdex.notebook.sections import (
    delete_section,
    edit_section,
    find_section,
    parse_sections,
    section_body,
)

TODOS = "# Todos\n\n## Today\n\n- a\n\n## Later\n\n- z\n"


def test_parse_sections_levels_and_extent():
    sections = parse_sections(TODOS)
    assert [(s.level, s.title, s.start, s.end) for s in sections] == [
        (1, "Todos", 0, 10),
        (2, "Today", 2, 6),
        (2, "Later", 6, 10),
    ]


def test_parse_ignores_fenced_headings():
    content = "## Script\n\n```\n# comment\n```\n"
    assert [s.title for s in parse_sections(content)] == ["Script"]


def test_find_section_case_insensitive_with_optional_level():
    assert find_section(TODOS, "today").title == "Today"
    assert find_section(TODOS, "## Later").start == 6
    assert find_section(TODOS, "### Later") is None
    assert find_section(TODOS, "Someday") is None


def test_append_to_section():
    new, message = edit_section(TODOS, "Today", "- b")
    assert message == "Content appended to section"
    assert new == "# Todos\n\n## Today\n\n- a\n- b\n\n## Later\n\n- z\n"


def test_replace_section():
    new, message = edit_section(TODOS, "Today", "- b", replace=True)
    assert message == "Section updated"
    assert new == "# Todos\n\n## Today\n\n- b\n\n## Later\n\n- z\n"


def test_missing_section_is_added_at_end():
    new, message = edit_section("# Todos\n", "Someday", "- c")
    assert message == "Section added"
    assert new == "# Todos\n\n## Someday\n\n- c\n"


def test_added_section_keeps_requested_level():
    new, _ = edit_section("", "### Deep", "text")
    assert new == "### Deep\n\ntext\n"


def test_append_to_last_section():
    new, _ = edit_section(TODOS, "Later", "- y")
    assert new.endswith("## Later\n\n- z\n- y\n")


def test_section_body():
    assert section_body(TODOS, "Today") == "- a"
    assert section_body(TODOS, "## Later") == "- z"
    assert section_body(TODOS, "Someday") is None


def test_delete_section_removes_heading_and_body():
    assert delete_section(TODOS, "Today") == "# Todos\n\n## Later\n\n- z\n"
    assert delete_section(TODOS, "Someday") is None


def test_delete_top_level_section_empties_file():
    assert delete_section(TODOS, "# Todos") == ""
