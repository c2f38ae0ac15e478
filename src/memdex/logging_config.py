"""Logging setup for the memdex CLI and server.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, by the entry points.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("LiteLLM", "httpx", "sentence_transformers", "watchfiles")


def configure_logging(verbose: bool = False, console: Console | None = None) -> logging.Handler:
    """Attach a RichHandler to the ``memdex`` logger.

    Args:
        verbose: DEBUG level when True, WARNING otherwise.
        console: Console to render on. Defaults to stderr.

    Returns:
        The installed handler. Calling again replaces it.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger("memdex")
    for existing in [h for h in logger.handlers if isinstance(h, RichHandler)]:
        logger.removeHandler(existing)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.ERROR)
    return handler
