"""Logging setup for the m365bridge command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "m365bridge"


def configure_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Send m365bridge log records to stderr through rich.

    Args:
        verbose: Log DEBUG and up instead of WARNING and up
        console: Console to log to (default: a stderr console)

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Replace handlers from an earlier call
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
