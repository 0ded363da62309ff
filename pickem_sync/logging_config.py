"""
Structured logging configuration for the pick'em sync engine.

Sync runs attach their counters (season, week, created/updated/skipped) to
log records through log_with_context. StructuredFormatter emits them as JSON
fields for log shipping; SyncConsoleFormatter appends them as key=value pairs
for operators reading a terminal or cron mail.
"""

import logging
import logging.config
import json
import sys
from datetime import datetime, UTC
from typing import Any, Dict, Optional
from pathlib import Path


# Context fields attached by log_with_context. LogRecord already owns
# "created", so sync counters use the games_ prefix.
CONTEXT_FIELDS = (
    "season_id", "week", "season_type", "scores_only",
    "games_created", "games_updated", "games_skipped", "failed_weeks",
    "endpoint", "attempt", "duration_ms",
)


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with sync context fields at the top level."""

    def __init__(self, service_name: str = "pickem-sync", version: str = "0.1.0"):
        super().__init__()
        self.service_name = service_name
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.version,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(_record_context(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        return json.dumps(log_entry, default=str)


class SyncConsoleFormatter(logging.Formatter):
    """Plain text lines with any sync context appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def _handler(level: str, formatter: str, **extra) -> Dict[str, Any]:
    handler = {"level": level, "formatter": formatter}
    handler.update(extra)
    return handler


def setup_logging(
    log_level: str = "INFO",
    service_name: str = "pickem-sync",
    version: str = "0.1.0",
    enable_file_logging: bool = False,
    log_file_path: Optional[str] = None,
    structured: bool = True
) -> None:
    """
    Configure logging for the pickem_sync package.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        service_name: Service name stamped on structured entries
        version: Version stamped on structured entries
        enable_file_logging: Also write structured entries to a rotating file
        log_file_path: Path to log file (defaults to logs/pickem_sync.log)
        structured: JSON lines on the console instead of plain text
    """
    handlers = {
        "console": _handler(
            log_level,
            "structured" if structured else "console",
            **{"class": "logging.StreamHandler", "stream": sys.stdout},
        )
    }

    if enable_file_logging:
        if log_file_path is None:
            log_file_path = str(Path("logs") / "pickem_sync.log")
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _handler(
            log_level,
            "structured",
            **{
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_file_path,
                "maxBytes": 10 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf8",
            },
        )

    handler_names = list(handlers)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
                "service_name": service_name,
                "version": version,
            },
            "console": {"()": SyncConsoleFormatter},
        },
        "handlers": handlers,
        "loggers": {
            "pickem_sync": {"level": log_level, "handlers": handler_names, "propagate": False},
            "httpx": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "watchdog": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
        "root": {"level": log_level, "handlers": handler_names},
    })


def log_with_context(logger: logging.Logger, level: str, message: str, **context) -> None:
    """
    Log a message with sync context fields.

    Args:
        logger: Logger instance
        level: Log level name (debug, info, warning, error, critical)
        message: Log message
        **context: Fields from CONTEXT_FIELDS to attach to the record
    """
    getattr(logger, level.lower())(message, extra=context)
