"""
Logging setup for MCP Relay.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOG_FORMAT = "%(name)s: %(message)s"
_configured = False


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """
    Configure root logging with a Rich handler.

    Args:
        verbose: Log at DEBUG instead of INFO
        console: Console to render to (defaults to stderr)
    """
    global _configured

    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()

    if _configured:
        root.setLevel(level)
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    # The MCP SDK and HTTP clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "mcp.client", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
