"""
Logging configuration — central setup for the CLI and the shell.

Called once at startup by main.py.  Modules log through
``logging.getLogger(__name__)`` and inherit what is configured here.

Level precedence:
    --debug / --verbose / --quiet  >  WORKBENCH_LOG_LEVEL  >  WARNING

A second, usually more detailed, destination can be added with
WORKBENCH_LOG_FILE (and WORKBENCH_LOG_FILE_LEVEL).

Diagnostics only.  Action output never goes through logging: it is teed
straight to the terminal and the per-run log file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO

# (threshold, format, datefmt): the first row whose threshold is >= the
# console level wins.
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional diagnostics file; parent directories are created.
        log_file_level: Level for the file (defaults to ``level``).
        quiet_third_party: Keep library loggers at WARNING unless at DEBUG.
        stream: Console stream (default: stderr).
    """
    console_level = _parse_level(level)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handler = _file_handler(Path(log_file), file_level)
        if handler is not None:
            root.addHandler(handler)
            root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter("%(message)s")


def _file_handler(path: Path, level: int) -> logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("Cannot open log file %s: %s", path, e)
        return None
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Convert a level name to its numeric value (WARNING if unknown)."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
