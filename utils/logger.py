"""Logging utilities for the pipeline."""
import logging
import time
from contextlib import contextmanager
from typing import Iterator

from rich.logging import RichHandler
from rich.console import Console

console = Console(stderr=True)


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with rich formatting.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding multiple handlers
    if not logger.handlers:
        handler = RichHandler(
            rich_tracebacks=True,
            console=console,
            show_time=True,
            show_path=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger


@contextmanager
def timed(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log how long the wrapped block took, even when it raises.

    Args:
        logger: Logger to report on
        label: Operation name shown in the log line
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug(f"{label} took {elapsed:.2f}s")
