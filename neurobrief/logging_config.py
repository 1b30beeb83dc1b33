"""Logging setup shared by the CLI and pipeline modules."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Literal

from rich.logging import RichHandler

ROOT_LOGGER = "neurobrief"

LogFormat = Literal["pretty", "json"]

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "google_genai")


class ContextFilter(logging.Filter):
    """Render ``extra={"context": {...}}`` as a compact key=value suffix."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            pairs = " ".join(
                f"{key}={value}" for key, value in context.items() if value is not None
            )
            record.context_suffix = f" [{pairs}]"
        else:
            record.context_suffix = ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[1] is not None:
            entry["error"] = {
                "message": str(record.exc_info[1]),
                "stack": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", log_format: LogFormat = "pretty") -> None:
    """Configure the package logger. Safe to call more than once."""
    if log_format == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s%(context_suffix)s"))
    handler.addFilter(ContextFilter())

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger under the package namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
