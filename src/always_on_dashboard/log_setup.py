"""Logging setup for the dashboard process.

Records are emitted as one JSON object per line on stderr so they never
interleave with the dashboard drawn on stdout. Structured fields travel in
``extra={"context": {...}}`` and are redacted like the message.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

from .redaction import sanitize_for_logging, sanitize_text

ROOT_LOGGER_NAME = "always_on_dashboard"


def component_name(logger_name: str) -> str:
    """``always_on_dashboard.location`` -> ``location``; the root logger maps to ``app``."""
    if logger_name == ROOT_LOGGER_NAME:
        return "app"
    prefix = f"{ROOT_LOGGER_NAME}."
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


class JsonConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "component": component_name(record.name),
            "message": sanitize_text(record.getMessage()),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            event["context"] = sanitize_for_logging(context)
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int | str = logging.INFO,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the process logger once; later calls only return it.

    Component loggers (``<name>.location``, ``<name>.weather``, ...) propagate
    here, so swapping this logger's handlers redirects all of them.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonConsoleFormatter())
    logger.addHandler(handler)
    return logger
