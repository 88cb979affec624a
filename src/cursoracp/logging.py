"""Logging for cursor-acp.

stdout is the ACP channel, so log output goes to a file (``logging.file`` in
config, or CURSOR_ACP_LOG) or, when an interactive terminal is attached, to
stderr. Under an editor with no log file configured nothing is emitted.

Verbosity 0-4 maps to error, warning, info, verbose, trace.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cursoracp.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_FILE_ENV = "CURSOR_ACP_LOG"
LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

logger = logging.getLogger("cursoracp")

_initialized = False


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level; an integer verbosity beats a level name."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = min(max(config.verbose, 0), len(VERBOSITY_LEVELS) - 1)
        return VERBOSITY_LEVELS[index]
    if config.level:
        level = logging.getLevelNamesMapping().get(config.level.upper())
        return level if level is not None else logging.INFO
    return logging.INFO


def _log_handler(config: LoggingConfig | None) -> logging.Handler | None:
    log_path = config.file if config and config.file else os.environ.get(LOG_FILE_ENV)
    if log_path:
        try:
            return logging.FileHandler(
                os.path.expanduser(log_path), mode="a", encoding="utf-8"
            )
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[cursor-acp] Failed to open log file: {e}", file=sys.stderr)
                return logging.StreamHandler(sys.stderr)
            return None

    if sys.stderr.isatty():
        return logging.StreamHandler(sys.stderr)
    return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach the cursor-acp handler once; later calls do nothing."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    handler = _log_handler(config)
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The cursoracp logger, or a child of it (e.g. "acp", "turn")."""
    if name:
        return logger.getChild(name)
    return logger
