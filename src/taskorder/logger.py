"""Logging setup for taskorder with verbosity levels."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

CHANGES_LEVEL = 25  # between INFO and WARNING
CHECKS_LEVEL = 15  # between DEBUG and INFO

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3


class TaskorderLogger(logging.Logger):
    """Logger with one method per verbosity level.

    - changes(): persisted state changes (commits, new edges)
    - checks(): per-item decisions (selections, day rollovers)
    - debug(): graph sizes and algorithm internals
    """

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> TaskorderLogger:
    """Return the shared "taskorder" logger."""
    logging.setLoggerClass(TaskorderLogger)
    logger = logging.getLogger("taskorder")
    assert isinstance(logger, TaskorderLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the logger for 0=errors only, 1=changes, 2=checks, 3=debug.

    Safe to call more than once; existing handlers are replaced.
    """
    logger = get_logger()
    logger.handlers.clear()

    level_map = {
        VERBOSITY_SILENT: logging.ERROR,
        VERBOSITY_CHANGES: CHANGES_LEVEL,
        VERBOSITY_CHECKS: CHECKS_LEVEL,
        VERBOSITY_DEBUG: logging.DEBUG,
    }
    level = level_map.get(verbosity, logging.DEBUG if verbosity > VERBOSITY_DEBUG else logging.ERROR)
    logger.setLevel(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)
