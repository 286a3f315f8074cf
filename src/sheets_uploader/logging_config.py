from __future__ import annotations

import contextvars
import json
import logging
import time
from typing import Any

from sheets_uploader.secrets import redact_string, redact_structure

APP_LOGGER_NAME = "sheets-uploader"

# Context variables for structured logging
_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "log_context", default=None
)


def get_log_context() -> dict[str, Any]:
    """Get the current logging context."""
    ctx = _log_context.get()
    return ctx.copy() if ctx else {}


class LogContext:
    """Context manager for temporary log context.

    Worker threads start with an empty context, so each worker binds the sheet
    it is handling for the duration of the upload.
    """

    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs
        self.token: contextvars.Token | None = None

    def __enter__(self) -> LogContext:
        current = get_log_context()
        current.update(self.kwargs)
        self.token = _log_context.set(current)
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token is not None:
            _log_context.reset(self.token)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        self.converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        original_msg = record.msg
        original_args = record.args
        record.msg = redact_structure(record.msg)
        record.args = redact_structure(record.args)
        try:
            formatted = super().format(record)
        finally:
            record.msg = original_msg
            record.args = original_args
        return redact_string(formatted)


class JsonFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__()
        self.converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        message = self._format_message(record)
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }

        context = get_log_context()
        if context:
            payload["context"] = redact_structure(context)

        if record.exc_info:
            payload["exc_info"] = redact_string(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _format_message(record: logging.LogRecord) -> str:
        msg = redact_structure(record.msg)
        args = redact_structure(record.args)
        if args:
            try:
                return redact_string(str(msg) % args)
            except (TypeError, ValueError):
                return redact_string(str(msg))
        return redact_string(str(msg))


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        return logging.INFO
    return logging.getLevelNamesMapping().get(str(level).upper(), logging.INFO)


def build_logger(
    *,
    level: str | int | None = None,
    fmt: str = "text",
    quiet: bool = False,
    name: str = APP_LOGGER_NAME,
) -> logging.Logger:
    """Return the logger for one run, with its own stderr handler.

    The logger does not propagate to the root logger and is handed to the rest
    of the program through ``UploaderConfig.logger``.
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if quiet:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        return logger

    logger.setLevel(_resolve_level(level))
    handler = logging.StreamHandler()
    if fmt.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(TextFormatter())
    logger.addHandler(handler)
    return logger


def add_logging_args(parser: Any) -> None:
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["text", "json"],
        help="Logging format (default: text)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        default=None,
        help="Don't log activity",
    )
