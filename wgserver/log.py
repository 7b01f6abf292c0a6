"""Logging setup."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

console = Console()
err_console = Console(stderr=True)


def debug_requested() -> bool:
    """True when DEBUG=true is set in the environment."""
    return os.environ.get("DEBUG", "false").lower() == "true"


def setup_logging(debug: bool = False) -> None:
    """Send package logs to stderr through rich."""
    level = logging.DEBUG if debug or debug_requested() else logging.INFO

    handler = RichHandler(
        console=err_console,
        show_time=debug,
        show_path=debug,
        markup=False,
        rich_tracebacks=debug,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger("wgserver")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
