"""Logging setup for sqlsplitter.

Modules take their logger from :func:`get_logger`, which keeps them under the
``sqlsplitter`` namespace. Nothing is printed until the CLI (or an embedding
application) calls :func:`configure_logging`; its handlers stamp each record
with the id of the split run that produced it.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, TextIO

import msgspec

if TYPE_CHECKING:
    from logging import LogRecord
    from pathlib import Path

__all__ = (
    "RunIDFilter",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "log_with_context",
    "set_run_id",
)

ROOT_LOGGER_NAME = "sqlsplitter"
NO_RUN_ID = "-"
SIMPLE_FORMAT = "%(asctime)s %(levelname)-7s [%(run_id)s] %(name)s: %(message)s"

_run_id: ContextVar[str | None] = ContextVar("sqlsplitter_run_id", default=None)
_encoder = msgspec.json.Encoder()


def set_run_id(run_id: str | None) -> None:
    """Tag log records from the current context with ``run_id``."""
    _run_id.set(run_id)


def get_run_id() -> str | None:
    return _run_id.get()


class RunIDFilter(logging.Filter):
    """Stamps ``record.run_id``, using ``-`` outside a split run."""

    def filter(self, record: LogRecord) -> bool:
        record.run_id = get_run_id() or NO_RUN_ID
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Fields passed through :func:`log_with_context` are merged into the top level.
    """

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "run_id", None) or get_run_id()
        if run_id and run_id != NO_RUN_ID:
            entry["run_id"] = run_id
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return _encoder.encode(entry).decode("utf-8")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``sqlsplitter`` or one of its children, e.g. ``get_logger("writer")``."""
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(
    level: str = "WARNING",
    format_style: str = "simple",
    log_file: Path | str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Send ``sqlsplitter`` logs to the console and optionally to a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Level name such as ``"INFO"``.
        format_style: ``"simple"`` for text lines, ``"structured"`` for JSON lines.
        log_file: Also append JSON lines to this file.
        stream: Console stream, stderr by default.
    """
    logger = get_logger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr if stream is None else stream)
    console.setFormatter(StructuredFormatter() if format_style == "structured" else logging.Formatter(SIMPLE_FORMAT))
    handlers: list[logging.Handler] = [console]
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(RunIDFilter())
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False


def log_with_context(logger: logging.Logger, level: int, message: str, **fields: Any) -> None:
    """Log ``message`` with ``fields`` attached for the structured formatter."""
    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"extra_fields": fields})
