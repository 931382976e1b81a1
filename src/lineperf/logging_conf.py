from __future__ import annotations

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers kept at WARNING whatever the application level is.
QUIET_LOGGERS = ("openpyxl", "fsspec")


def resolve_level(level: str | int) -> int | None:
    """Numeric logging level for a name ("info") or number; None when unknown."""
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    numeric = logging.getLevelName(str(level).strip().upper())
    return numeric if isinstance(numeric, int) else None


def configure_logging(level: str | int = "INFO", *, stream: TextIO | None = None) -> None:
    """Send all lineperf records to one stream handler (stdout by default).

    Replaces any handler already on the root logger, so calling it again
    (the CLI does, once per ``main()``) never duplicates lines.
    """
    numeric_level = resolve_level(level)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level if numeric_level is not None else logging.INFO)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if numeric_level is None:
        logging.getLogger(__name__).warning("Invalid log level %r, using INFO", level)
