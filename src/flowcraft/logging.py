"""
Logging utilities for FlowCraft.

All modules log through children of the ``flowcraft`` logger. Nothing is
configured on import; the embedding editor calls :func:`setup_logging` once
at startup, usually passing a handler that writes to its output channel.

Lines follow the output channel layout::

    [2024-05-01T12:00:00.000Z] [WARNING] flowcraft.api.engine: POST ... retrying

A record logged with ``extra={"context": {...}}`` gets the context appended
as indented JSON on the following lines.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import TextIO

# Package root logger
_root_logger = logging.getLogger("flowcraft")

LOG_FORMAT = "[%(asctime)s] [%(levelname)-7s] %(name)s: %(message)s"


class ChannelFormatter(logging.Formatter):
    """UTC ISO-8601 timestamps plus an optional JSON ``context`` block."""

    converter = time.gmtime

    def __init__(self, fmt: str | None = None) -> None:
        super().__init__(fmt or LOG_FORMAT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S", self.converter(record.created))
        return f"{stamp}.{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = getattr(record, "context", None)
        if context:
            text += "\n" + json.dumps(context, indent=2, default=str)
        return text


def setup_logging(
    level: str | int = "INFO",
    *,
    stream: TextIO | None = None,
    file: str | None = None,
    handler: logging.Handler | None = None,
    fmt: str | None = None,
) -> None:
    """
    Configure the ``flowcraft`` logger. Calling it again replaces the handlers.

    Args:
        level: ``debug``, ``info``, ``warning`` or ``error`` (any case), or an int
        stream: Output stream when no *handler* is given (defaults to stderr)
        file: Optional file path that also receives every line
        handler: Host-provided handler, e.g. one writing to the editor output channel
        fmt: Custom log format string
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    _root_logger.setLevel(level)
    for old in list(_root_logger.handlers):
        _root_logger.removeHandler(old)
        old.close()

    handlers: list[logging.Handler] = [handler or logging.StreamHandler(stream or sys.stderr)]
    if file:
        handlers.append(logging.FileHandler(file, encoding="utf-8"))

    formatter = ChannelFormatter(fmt)
    for h in handlers:
        if h.formatter is None:
            h.setFormatter(formatter)
        _root_logger.addHandler(h)


def get_logger(name: str) -> logging.Logger:
    """Return the ``flowcraft.<name>`` logger (e.g. ``"api.engine"``)."""
    if name.startswith("flowcraft."):
        return logging.getLogger(name)
    return logging.getLogger(f"flowcraft.{name}")
