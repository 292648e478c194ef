"""Structured logging configuration.

Besides the console sink, every record is kept in a bounded in-memory buffer
so admins can inspect recent activity through the ``/logs`` endpoint. The
buffer lives for the lifetime of the process and is lost on restart.
"""

import json
import logging
import sys
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Union

from pythonjsonlogger import jsonlogger

from eviction_crm.core.config import settings


class LogLevel(str, Enum):
    """Levels exposed by the recent-logs buffer."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def from_levelno(cls, levelno: int) -> "LogLevel":
        """Map a stdlib logging level number onto the buffer levels."""
        if levelno >= logging.CRITICAL:
            return cls.FATAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


@dataclass(frozen=True)
class LogEntry:
    """A single captured log record."""

    level: LogLevel
    message: str
    timestamp: datetime
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


def _snapshot(data: Any) -> Any:
    """Copy ``data`` into plain JSON values so later mutation can't leak in."""
    try:
        return json.loads(json.dumps(data, default=str))
    except Exception:
        try:
            text = repr(data)
        except Exception:
            text = f"<{type(data).__name__}>"
        return {"unformatted": text}


class RecentLogsHandler(logging.Handler):
    """Handler that keeps the most recent records in a ring buffer."""

    def __init__(self, capacity: int = 1000, level: int = logging.DEBUG):
        super().__init__(level)
        self.capacity = capacity
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = getattr(record, "data", None)
            entry = LogEntry(
                level=LogLevel.from_levelno(record.levelno),
                message=record.getMessage(),
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                data=_snapshot(data) if data is not None else None,
            )
            with self._entries_lock:
                self._entries.append(entry)
        except Exception:
            self.handleError(record)

    def get_recent(
        self,
        count: int = 100,
        level: Optional[Union[LogLevel, str]] = None,
    ) -> List[LogEntry]:
        """Return the last ``count`` entries in chronological order."""
        with self._entries_lock:
            entries = list(self._entries)
        if level is not None:
            level = LogLevel(level)
            entries = [e for e in entries if e.level == level]
        if count <= 0:
            return []
        return entries[-count:]

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._entries_lock:
            return len(self._entries)


# Process-wide buffer, installed on the root logger by setup_logging()
recent_logs = RecentLogsHandler(capacity=settings.LOG_BUFFER_SIZE)


class CrmJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with CRM-specific fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        # Add timestamp in ISO format
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        # Add standard fields
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = "eviction-crm"

        # Add location info
        if record.pathname:
            log_record["file"] = f"{record.pathname}:{record.lineno}"

        # Remove redundant fields
        for field in ["asctime", "levelname", "name"]:
            log_record.pop(field, None)


class ContextFilter(logging.Filter):
    """Filter that adds context fields to log records."""

    _context: Dict[str, Any] = {}

    @classmethod
    def set_deployment_id(cls, deployment_id: str):
        """Set the current deployment ID for tracing."""
        cls._context["deployment_id"] = deployment_id

    @classmethod
    def clear_deployment_id(cls):
        """Stop tagging records with a deployment ID."""
        cls._context.pop("deployment_id", None)

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to the log record."""
        for key, value in self._context.items():
            setattr(record, key, value)
        return True


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
) -> None:
    """
    Set up structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ('json' or 'text')
    """
    level = level or settings.LOG_LEVEL
    format_type = format_type or settings.LOG_FORMAT

    # Root passes everything; LOG_LEVEL only gates the console
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    # Add context filter
    handler.addFilter(ContextFilter())

    # Set formatter based on format type
    if format_type.lower() == "json":
        formatter = CrmJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Recent logs buffer for the admin log viewer
    root_logger.addHandler(recent_logs)

    # Set levels for noisy libraries
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def get_recent_logs(
    count: int = 100,
    level: Optional[Union[LogLevel, str]] = None,
) -> List[LogEntry]:
    """Get the most recent buffered log entries, oldest first."""
    return recent_logs.get_recent(count, level)


def clear_logs() -> None:
    """Empty the recent logs buffer."""
    recent_logs.clear()


# Convenience function for structured logging
def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    **data,
) -> None:
    """
    Log a message with a structured data payload.

    The payload is attached as the ``data`` attribute of the record, which the
    recent logs buffer snapshots and the JSON formatter emits as a field.

    Args:
        logger: Logger instance
        level: Log level
        message: Log message
        **data: Structured fields to attach
    """
    logger.log(level, message, extra={"data": data} if data else None)
