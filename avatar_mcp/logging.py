"""Logging for the avatar MCP back-end.

Console output is colored and terse; ``--log-file`` adds a JSON-lines file
that carries every structured field attached through ``extra=``.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

PACKAGE_LOGGER = "avatar_mcp"

# Below DEBUG; full tool payloads are only logged here (-vv)
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

# extra= keys understood by the formatters, with their console labels.
# Keys without a label only appear in the JSON file.
FIELDS: dict[str, str | None] = {
    "rpc_method": "method",
    "request_id": "id",
    "tool_name": "tool",
    "source": "source",
    "duration_ms": "ms",
    "event_type": "event",
    "conversation_id": "conversation",
    "tool_args": None,
    "tool_result": None,
    "payload": None,
}

_COLORS = {
    "TRACE": "\033[35m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[31m",
}
_RESET = "\033[0m"


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in FIELDS if hasattr(record, key)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[LEVEL] component: message (key=value, ...)``"""

    def format(self, record: logging.LogRecord) -> str:
        color = _COLORS.get(record.levelname, "")
        component = record.name.removeprefix(f"{PACKAGE_LOGGER}.")
        line = f"{color}[{record.levelname}]{_RESET} {component}: {record.getMessage()}"

        labels = [
            f"{FIELDS[key]}={value}"
            for key, value in _fields(record).items()
            if FIELDS[key] is not None
        ]
        if labels:
            line += f" ({', '.join(labels)})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    verbosity: int = 0,
    log_file: Path | str | None = None,
    log_level: str = "INFO",
) -> logging.Logger:
    """Configure the ``avatar_mcp`` logger tree.

    Args:
        verbosity: 1 selects DEBUG, 2 or more selects TRACE; 0 uses ``log_level``
        log_file: Optional JSON-lines file, always written at TRACE
        log_level: Level name used when ``verbosity`` is 0
    """
    if verbosity >= 2:
        level = TRACE_LEVEL
    elif verbosity == 1:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(TRACE_LEVEL)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)
        logger.info(f"Logging to file: {path}")

    return logger


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Return ``avatar_mcp.<name>``; names already under the package are kept."""
    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def summarize(value: Any, limit: int = 200) -> str:
    """Render a value as a single truncated line for log messages."""
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def log_tool_call(logger: logging.Logger, tool_name: str, args: dict[str, Any]) -> float:
    """Log an outgoing tool call and return its start time for ``log_tool_result``."""
    logger.debug(f"Tool call: {tool_name}", extra={"tool_name": tool_name, "tool_args": args})
    return time.perf_counter()


def log_tool_result(
    logger: logging.Logger,
    tool_name: str,
    payload: Any,
    started: float,
    source: str,
) -> None:
    """Log a decoded tool result with its round-trip time and source.

    The full payload is attached only when TRACE is enabled.
    """
    summary = summarize(payload, 100)
    extra: dict[str, Any] = {
        "tool_name": tool_name,
        "tool_result": summary,
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "source": source,
    }
    logger.debug(f"Tool result: {tool_name} -> {summary}", extra=extra)

    if logger.isEnabledFor(TRACE_LEVEL):
        logger.log(TRACE_LEVEL, f"Tool payload: {tool_name}", extra={**extra, "payload": payload})
