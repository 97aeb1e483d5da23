"""Console logging configuration using rich."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(log_level: str = "info", console: Optional[Console] = None) -> None:
    """Route all log records through a rich console handler.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        console: Console to write to, stderr by default.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
