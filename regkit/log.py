"""Logging setup for RegKit."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Configure the root logger with a Rich handler.

    Args:
        verbose: Log at DEBUG instead of WARNING
        console: Console to write to (defaults to stderr)
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=verbose,
            rich_tracebacks=True,
        )
    )
