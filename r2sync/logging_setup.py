from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "r2sync"
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logging(
    level: int = logging.INFO,
    *,
    console: Console | None = None,
    quiet_third_party: bool = True,
) -> logging.Logger:
    """Attach a RichHandler to the package logger and return it.

    Calling it again updates the level and console instead of stacking a
    second handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    existing = [handler for handler in logger.handlers if isinstance(handler, RichHandler)]
    if existing:
        if console is not None:
            existing[0].console = console
    else:
        handler = RichHandler(
            console=console,
            show_path=level <= logging.DEBUG,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if quiet_third_party else level)

    return logger
