"""Logging setup."""
import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Route the skillloop loggers through a RichHandler."""
    handler = RichHandler(console=console or Console(stderr=True), rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root = logging.getLogger("skillloop")
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False
