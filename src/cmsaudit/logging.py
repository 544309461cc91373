"""Structured JSON logging for cmsaudit.

Records from every ``cmsaudit.*`` logger are written one JSON object per line
to `.cmsaudit/cmsaudit.log`, rotated at 5MB with 3 backups kept. Projects
without a `.cmsaudit/` directory get no log file.

CLI callbacks are wrapped in :func:`logged_command`, which adds one
``<command> finished`` or ``<command> failed`` record per invocation
carrying the options used and the elapsed time.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TypeVar, cast

from cmsaudit.core import LOG_FILENAME

LOG_LEVEL_ENV = "CMSAUDIT_LOG_LEVEL"
PACKAGE_LOGGER = "cmsaudit"

_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_KEEP = 3

# LogRecord attribute -> key in the JSON line
_EXTRA_FIELDS: dict[str, str] = {
    "command": "command",
    "args_data": "args",
    "duration_ms": "duration_ms",
    "error": "error",
}

_handler_lock = threading.Lock()
_cli_logger = logging.getLogger(f"{PACKAGE_LOGGER}.cli")

F = TypeVar("F", bound=Callable[..., Any])


class JsonLinesFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for attr, key in _EXTRA_FIELDS.items():
            value = getattr(record, attr, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["exception"] = f"{type(exc).__name__}: {exc}"
        return json.dumps(entry, default=str, ensure_ascii=False)


def level_from_env() -> int:
    """Level named by ``CMSAUDIT_LOG_LEVEL``; INFO when unset or unrecognised."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def setup_logging(cmsaudit_dir: Path) -> logging.Logger:
    """Attach the JSONL file handler for *cmsaudit_dir* to the package logger.

    Repeated calls for the same directory reuse the existing handler. A
    handler left over from a different project is closed and replaced, so a
    long-lived process that analyzes several projects never writes one
    project's records into another's log.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    target = str((cmsaudit_dir / LOG_FILENAME).resolve())

    with _handler_lock:
        for existing in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
            if existing.baseFilename == target:
                return logger
            logger.removeHandler(existing)
            existing.close()

        handler = RotatingFileHandler(
            target,
            maxBytes=_ROTATE_BYTES,
            backupCount=_ROTATE_KEEP,
            encoding="utf-8",
        )
        handler.setFormatter(JsonLinesFormatter())
        logger.addHandler(handler)
        logger.setLevel(level_from_env())
    return logger


def logged_command(name: str) -> Callable[[F], F]:
    """Decorate a click callback so each call logs its outcome and duration.

    A ``SystemExit`` with a non-zero status (``fail()``, ``--fail-on``) is
    logged as a failure at WARNING; any other exception at ERROR. Both are
    re-raised unchanged.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            options = {k: v for k, v in kwargs.items() if v not in (None, False, ())}

            def emit(level: int, outcome: str, error: str | None = None) -> None:
                _cli_logger.log(
                    level,
                    "%s %s",
                    name,
                    outcome,
                    extra={
                        "command": name,
                        "args_data": options,
                        "duration_ms": round((time.monotonic() - started) * 1000, 1),
                        "error": error,
                    },
                )

            try:
                result = func(*args, **kwargs)
            except SystemExit as exc:
                if exc.code:
                    emit(logging.WARNING, "failed", f"exit status {exc.code}")
                else:
                    emit(logging.INFO, "finished")
                raise
            except Exception as exc:
                emit(logging.ERROR, "failed", str(exc))
                raise
            emit(logging.INFO, "finished")
            return result

        return cast(F, wrapper)

    return decorator
