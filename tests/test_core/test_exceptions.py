"""Tests for the application error model."""

import pytest

from eviction_crm.core.exceptions import (
    AppError,
    AuthenticationError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    InvalidTransitionError,
    create_app_error,
)


@pytest.mark.unit
class TestCreateAppError:
    """Tests for create_app_error."""

    def test_defaults(self):
        """Test that a bare error is medium, unknown and recoverable."""
        error = create_app_error("Something broke")

        assert isinstance(error, AppError)
        assert error.message == "Something broke"
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.category == ErrorCategory.UNKNOWN
        assert error.recoverable is True
        assert error.recovery_attempted is False
        assert error.recovery_successful is None
        assert error.context == {}
        assert error.timestamp.tzinfo is not None

    def test_explicit_fields(self):
        """Test that explicit options are kept."""
        error = create_app_error(
            "SMTP refused",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EMAIL,
            context={"to": ["a@example.com"], "attempt": 2},
            recoverable=False,
        )

        assert error.severity == ErrorSeverity.HIGH
        assert error.category == ErrorCategory.EMAIL
        assert error.context == {"to": ["a@example.com"], "attempt": 2}
        assert error.recoverable is False

    def test_cause_is_chained(self):
        """Test that the cause appears in __cause__ and in the trace."""
        cause = ConnectionRefusedError("connection refused")
        error = create_app_error("Database down", cause=cause)

        assert error.cause is cause
        assert error.__cause__ is cause
        assert "Caused by: ConnectionRefusedError: connection refused" in error.trace

    def test_context_is_copied(self):
        """Test that later changes to the caller's dict don't leak in."""
        context = {"variable": "DATABASE_URL"}
        error = create_app_error("Missing", context=context)
        context["variable"] = "OTHER"

        assert error.context["variable"] == "DATABASE_URL"


@pytest.mark.unit
class TestAppErrorSerialization:
    """Tests for AppError.to_dict."""

    def test_to_dict_fields(self):
        error = create_app_error(
            "Test email error",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.EMAIL,
            context={"test": True},
        )
        data = error.to_dict()

        assert data["message"] == "Test email error"
        assert data["severity"] == "low"
        assert data["category"] == "email"
        assert data["context"] == {"test": True}
        assert data["recoverable"] is True
        assert data["recovery_attempted"] is False
        assert data["recovery_successful"] is None
        assert "cause" not in data
        assert isinstance(data["timestamp"], str)

    def test_to_dict_includes_cause(self):
        error = create_app_error("Wrapped", cause=ValueError("bad value"))
        assert error.to_dict()["cause"] == "ValueError: bad value"


@pytest.mark.unit
class TestErrorSubclasses:
    """Tests for the specialised errors."""

    def test_configuration_error(self):
        error = ConfigurationError("DATABASE_URL")

        assert error.category == ErrorCategory.ENVIRONMENT
        assert error.severity == ErrorSeverity.HIGH
        assert error.context == {"variable": "DATABASE_URL"}
        assert error.variable == "DATABASE_URL"
        assert error.to_dict()["code"] == "CONFIGURATION_ERROR"

    def test_invalid_transition_error(self):
        error = InvalidTransitionError("deploy-1", "completed", "failed")

        assert error.category == ErrorCategory.DEPLOYMENT
        assert error.recoverable is False
        assert error.context == {"deployment_id": "deploy-1", "from": "completed", "to": "failed"}

    def test_authentication_error(self):
        error = AuthenticationError()

        assert error.category == ErrorCategory.AUTHENTICATION
        assert error.recoverable is False
        assert error.to_dict()["code"] == "UNAUTHORIZED"
