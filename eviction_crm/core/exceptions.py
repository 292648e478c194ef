"""Structured application errors for the Eviction CRM.

Every failure that crosses a boundary (database call, email send, deployment
step, configuration read) is wrapped in an ``AppError`` before it is logged or
surfaced. The raw exception is kept as ``cause`` and only appears in logs
through the wrapping error.
"""

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import JsonValue

JsonMap = Dict[str, JsonValue]


class ErrorSeverity(str, Enum):
    """How loudly an error is reported."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Subsystem an error originates from. Selects the recovery strategy."""

    DATABASE = "database"
    AUTHENTICATION = "authentication"
    API = "api"
    EMAIL = "email"
    DEPLOYMENT = "deployment"
    ENVIRONMENT = "environment"
    UNKNOWN = "unknown"


class AppError(Exception):
    """Base exception for all application errors."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[JsonMap] = None,
        cause: Optional[BaseException] = None,
        recoverable: bool = True,
    ):
        self.message = message
        self.severity = ErrorSeverity(severity)
        self.category = ErrorCategory(category)
        self.context: JsonMap = dict(context or {})
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable
        self.recovery_attempted = False
        self.recovery_successful: Optional[bool] = None
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def trace(self) -> str:
        """Formatted trace of this error, followed by its cause when present."""
        lines = traceback.format_exception_only(type(self), self)
        if self.__traceback__ is not None:
            lines = traceback.format_tb(self.__traceback__) + lines
        trace = "".join(lines).rstrip()
        if self.cause is not None:
            cause_lines = traceback.format_exception_only(type(self.cause), self.cause)
            trace += "\nCaused by: " + "".join(cause_lines).rstrip()
        return trace

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logs and API responses."""
        result: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "recovery_attempted": self.recovery_attempted,
            "recovery_successful": self.recovery_successful,
        }
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result


class ConfigurationError(AppError):
    """Raised when a required environment variable is missing."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, variable: str):
        super().__init__(
            message=f"Missing required environment variable: {variable}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.ENVIRONMENT,
            context={"variable": variable},
        )
        self.variable = variable


class InvalidTransitionError(AppError):
    """Raised when a deployment status change is not allowed."""

    code = "INVALID_TRANSITION"

    def __init__(self, deployment_id: str, current: str, target: str):
        super().__init__(
            message=f"Deployment {deployment_id} cannot move from {current} to {target}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.DEPLOYMENT,
            context={"deployment_id": deployment_id, "from": current, "to": target},
            recoverable=False,
        )


class AuthenticationError(AppError):
    """Raised when authentication fails."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Invalid or missing admin token"):
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.AUTHENTICATION,
            recoverable=False,
        )


class AuthorizationError(AppError):
    """Raised when the caller is not an admin."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Admin access required"):
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.AUTHENTICATION,
            recoverable=False,
        )


def create_app_error(
    message: str,
    *,
    severity: Optional[ErrorSeverity] = None,
    category: Optional[ErrorCategory] = None,
    context: Optional[JsonMap] = None,
    cause: Optional[BaseException] = None,
    recoverable: Optional[bool] = None,
) -> AppError:
    """Create a structured application error.

    Args:
        message: Human-readable description
        severity: Defaults to medium
        category: Defaults to unknown
        context: Extra key/value details for diagnosis
        cause: Underlying exception being wrapped
        recoverable: Defaults to True

    Returns:
        A new AppError with recovery not yet attempted
    """
    return AppError(
        message,
        severity=severity or ErrorSeverity.MEDIUM,
        category=category or ErrorCategory.UNKNOWN,
        context=context,
        cause=cause,
        recoverable=True if recoverable is None else recoverable,
    )
