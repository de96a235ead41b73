"""
Structured logging for poolkit.

This module provides structured logging with JSON formatting and context
support. Context is stored in a context variable so that fields added by one
asyncio task (for example the pool name) do not leak into another.
"""

import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

_log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "poolkit_log_context", default={}
)

_RESERVED_ATTRS = frozenset([
    "msg", "args", "exc_info", "exc_text", "structured_data",
    "message", "levelname", "levelno", "pathname", "filename",
    "module", "name", "lineno", "funcName", "created",
    "asctime", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "stack_info", "taskName",
])


class StructuredLogRecord(logging.LogRecord):
    """LogRecord that captures the current logging context."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.structured_data = get_context_data()


class StructuredLogger(logging.Logger):
    """Logger whose records carry the current logging context.

    Fields passed through ``extra=`` may not shadow record attributes or the
    context itself.
    """

    def makeRecord(self, name, level, fn, lno, msg, args, exc_info, func=None, extra=None, sinfo=None):
        record = StructuredLogRecord(name, level, fn, lno, msg, args, exc_info, func, sinfo)
        extra = extra or {}
        clashes = _RESERVED_ATTRS.intersection(extra)
        if clashes:
            raise KeyError(f"extra fields {sorted(clashes)} would overwrite log record attributes")
        record.__dict__.update(extra)
        return record


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def __init__(self, include_timestamp: bool = True, include_level: bool = True, include_name: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_name = include_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()
        if self.include_level:
            log_data["level"] = record.levelname
        if self.include_name:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "structured_data"):
            log_data.update(record.structured_data)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class LoggingContext:
    """Context manager that adds fields to every record logged inside it.

    Example:
        with LoggingContext(pool="orders"):
            logger.info("Acquired handle")
    """

    def __init__(self, **kwargs):
        self.new_data = kwargs
        self._token: Optional[contextvars.Token] = None

    def __enter__(self):
        data = dict(_log_context.get())
        data.update(self.new_data)
        self._token = _log_context.set(data)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def get_logger(name: str) -> logging.Logger:
    """Get a structured logger with the given name."""
    logging.setLoggerClass(StructuredLogger)
    return logging.getLogger(name)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = True,
    handlers: Optional[List[logging.Handler]] = None,
    **formatter_options: bool,
) -> None:
    """Route every log record to stderr, replacing the root logger's handlers.

    Args:
        level: The logging level to use
        json_format: One JSON object per line instead of plain text
        handlers: Extra handlers to attach next to the stderr one
        **formatter_options: ``include_timestamp``, ``include_level`` or
            ``include_name`` for the JSON formatter
    """
    if json_format:
        formatter: logging.Formatter = JSONFormatter(**formatter_options)
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [console, *(handlers or [])]
    logging.setLoggerClass(StructuredLogger)


def get_context_data() -> Dict[str, Any]:
    """Get a copy of the current logging context."""
    return dict(_log_context.get())


def clear_context() -> None:
    """Clear the current logging context."""
    _log_context.set({})
