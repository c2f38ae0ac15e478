"""memdex notebook: the markdown content store."""

from memdex.notebook.init import NOTEBOOK_FOLDERS, create_starter_notebook, init_notebook
from memdex.notebook.paths import is_indexable, iter_markdown_files, relative_path, resolve_path
from memdex.notebook.sections import (
    delete_section,
    edit_section,
    find_section,
    parse_sections,
    section_body,
)
from memdex.notebook.tools import (
    WriteResult,
    append_daily_entry,
    delete_note_section,
    read_note,
    write_note,
)

__all__ = [
    "NOTEBOOK_FOLDERS",
    "WriteResult",
    "append_daily_entry",
    "create_starter_notebook",
    "delete_note_section",
    "delete_section",
    "edit_section",
    "find_section",
    "init_notebook",
    "is_indexable",
    "iter_markdown_files",
    "parse_sections",
    "read_note",
    "relative_path",
    "resolve_path",
    "section_body",
    "write_note",
]
