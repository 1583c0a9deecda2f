# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for bindrel.

Every log line is a single JSON object with a timestamp, a level, the source
module and the message. Release runs get read back by whoever has to finish
the job by hand when something fails, so the stage, rule and file that were
involved travel as structured fields rather than being glued into the text.

How this works:
  - Python's standard `logging` module does the routing; JsonFormatter
    serializes each record into one line.
  - A stdout handler is always attached, a file handler optionally.
  - `get_logger` is the only way to create loggers in this package.

Example line:
  {"ts": "2026-...", "level": "INFO", "module": "bindrel.release.patching.patcher",
   "msg": "Rule applied", "rule": "local-library-path", "matches": 47}
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Attributes every LogRecord carries. Anything else on the record came in
# through `extra=` and belongs in the JSON output.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts     — ISO 8601 UTC timestamp
      level  — log level name
      module — the logger name (usually the Python module path)
      msg    — the formatted message string

    Fields passed through `extra` are merged in as additional keys. When the
    record carries exception info, the formatted traceback goes under `exc`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


_PACKAGE = "bindrel"

# Set by bootstrap; loggers created afterwards start out with these.
_package_level: Optional[int] = None
_package_log_file: Optional[Path] = None


def _in_package(name: str) -> bool:
    return name == _PACKAGE or name.startswith(_PACKAGE + ".")


def _package_loggers() -> list[logging.Logger]:
    return [
        logging.getLogger(name)
        for name in list(logging.Logger.manager.loggerDict)
        if _in_package(name)
    ]


def _attach_file_handler(logger: logging.Logger, log_file: Path, level: int) -> None:
    """Add a JSON file handler for `log_file` unless the logger already has one."""
    target = os.path.abspath(log_file)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(target, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(JsonFormatter())
    logger.addHandler(file_handler)


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. When omitted,
                   loggers under `bindrel` take the package-wide level set by
                   `set_package_log_level`, anything else gets INFO.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file. Loggers under `bindrel` also pick up
                  the package-wide file set by `set_package_log_file`.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    if log_level is not None:
        level = _resolve_log_level(log_level)
    elif _package_level is not None and _in_package(name):
        level = _package_level
    else:
        level = logging.INFO
    if log_file is None and _in_package(name):
        log_file = _package_log_file
    logger.setLevel(level)

    # Calling get_logger twice for one name must not stack handlers.
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        if log_file is not None:
            _attach_file_handler(logger, log_file, level)
        return logger

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(JsonFormatter())
    logger.addHandler(stdout_handler)

    if log_file is not None:
        _attach_file_handler(logger, log_file, level)

    logger.propagate = False

    return logger


def set_package_log_level(log_level: str) -> None:
    """
    Point every logger under the `bindrel` namespace at one level.

    Module loggers are created at import time, some of them only after the
    CLI has bootstrapped. Existing loggers are re-leveled here and later ones
    start at this level through `get_logger`.
    """
    global _package_level
    level = _resolve_log_level(log_level)
    _package_level = level
    for logger in _package_loggers():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def set_package_log_file(log_file: Optional[Path]) -> None:
    """
    Send every `bindrel` logger to `log_file` as well as stdout.

    Passing None detaches and closes the package file handlers again.
    """
    global _package_log_file
    previous = _package_log_file
    _package_log_file = log_file

    for logger in _package_loggers():
        if previous is not None:
            stale = os.path.abspath(previous)
            for handler in list(logger.handlers):
                if isinstance(handler, logging.FileHandler) and handler.baseFilename == stale:
                    logger.removeHandler(handler)
                    handler.close()
        if log_file is not None and logger.handlers:
            _attach_file_handler(logger, log_file, logger.level or logging.INFO)
