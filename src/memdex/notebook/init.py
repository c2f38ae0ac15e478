"""Notebook scaffold: purpose-based folders and starter files."""

from __future__ import annotations

from pathlib import Path

from memdex.config import DEFAULT_DB_RELPATH

NOTEBOOK_FOLDERS = ("reference", "lists", "knowledge", "daily")

STARTER_FILES: dict[str, str] = {
    "reference/contacts.md": (
        "# Contacts\n"
        "\n"
        "Contact details. Search finds them; edit them like any note.\n"
        "\n"
        "## Example Contact\n"
        "\n"
        "- Name: Example Person\n"
        "- Email: example@email.com\n"
        "- Notes: This is an example contact\n"
    ),
    "reference/preferences.md": (
        "# Preferences\n"
        "\n"
        "How you like things done.\n"
        "\n"
        "## Communication\n"
        "\n"
        "- Preferred response style: Direct and concise\n"
        "\n"
        "## Schedule\n"
        "\n"
        "- Add your typical schedule and preferences here\n"
    ),
    "reference/standing-orders.md": (
        "# Standing Orders\n"
        "\n"
        "Rules and instructions that should always be followed.\n"
        "\n"
        "## Notifications\n"
        "\n"
        "- Add rules about when and how to notify you\n"
    ),
    "lists/todos.md": (
        "# To Do\n"
        "\n"
        "- [ ] Set up your notebook preferences\n"
        "- [ ] Add your contacts\n"
    ),
    "knowledge/facts.md": (
        "# Facts\n"
        "\n"
        "Things learned that might be useful later.\n"
        "\n"
        "## Project Info\n"
        "\n"
        "- Add project-specific facts here\n"
    ),
}


def init_notebook(root: Path) -> list[Path]:
    """Create the notebook folders and the index directory under *root*.

    Returns:
        The directories that did not exist before.
    """
    created: list[Path] = []
    for folder in (*NOTEBOOK_FOLDERS, str(DEFAULT_DB_RELPATH.parent)):
        path = root / folder
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)
            created.append(path)
    return created


def create_starter_notebook(root: Path) -> list[str]:
    """Scaffold *root* and write starter files that are not already there.

    Existing files are never overwritten.

    Returns:
        Relative paths of the files written.
    """
    init_notebook(root)
    written: list[str] = []
    for rel, content in STARTER_FILES.items():
        path = root / rel
        if path.exists():
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(rel)
    return written
