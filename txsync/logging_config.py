"""Logging setup for the CLI and webhook server."""

import logging

from rich.console import Console
from rich.logging import RichHandler

_configured = False


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route the root logger through a RichHandler. Safe to call twice."""
    global _configured
    if _configured:
        return

    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(console=console, show_path=verbose, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    _configured = True
