"""Observability module - metrics and structured logging."""

from eviction_crm.observability.metrics import metrics, MetricsCollector
from eviction_crm.observability.logging import (
    LogEntry,
    LogLevel,
    clear_logs,
    get_logger,
    get_recent_logs,
    setup_logging,
)

__all__ = [
    "metrics",
    "MetricsCollector",
    "LogEntry",
    "LogLevel",
    "clear_logs",
    "get_logger",
    "get_recent_logs",
    "setup_logging",
]
