"""Tests for environment validation and recovery."""

import pytest

from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.core.exceptions import (
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    create_app_error,
)


@pytest.mark.unit
class TestValidateEnvironment:
    """Tests for validate_environment."""

    def test_valid_environment(self, env_source):
        result = EnvironmentValidator(env_source).validate_environment()

        assert result.valid is True
        assert result.errors == []

    def test_missing_required_variable(self, env_source):
        del env_source["NEXTAUTH_URL"]

        result = EnvironmentValidator(env_source).validate_environment()

        assert result.valid is False
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.category == ErrorCategory.ENVIRONMENT
        assert error.severity == ErrorSeverity.HIGH
        assert error.context == {"variable": "NEXTAUTH_URL"}

    def test_blank_required_variable_counts_as_missing(self, env_source):
        env_source["NEXTAUTH_SECRET"] = "   "

        result = EnvironmentValidator(env_source).validate_environment()

        assert [e.context["variable"] for e in result.errors] == ["NEXTAUTH_SECRET"]
        assert result.errors[0].severity == ErrorSeverity.HIGH

    def test_database_url_without_scheme_separator(self, env_source):
        env_source["DATABASE_URL"] = "localhost:5432/crm"

        result = EnvironmentValidator(env_source).validate_environment()

        assert result.valid is False
        error = result.errors[0]
        assert error.context == {"variable": "DATABASE_URL"}
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.message == "DATABASE_URL must be a valid connection string"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("NEXTAUTH_SECRET", "too-short"),
            ("NEXTAUTH_URL", "crm.example.com"),
            ("EMAIL_PORT", "smtp"),
            ("EMAIL_FROM", "noreply"),
            ("ADMIN_EMAIL_ADDRESSES", "ops"),
        ],
    )
    def test_format_violations(self, env_source, name, value):
        env_source[name] = value

        result = EnvironmentValidator(env_source).validate_environment()

        assert [e.context["variable"] for e in result.errors] == [name]
        assert result.errors[0].severity == ErrorSeverity.MEDIUM

    def test_optional_variables_may_be_absent(self, env_source):
        for name in ("EMAIL_SERVER", "EMAIL_PORT", "EMAIL_USER", "EMAIL_FROM", "ADMIN_EMAIL_ADDRESSES"):
            env_source.pop(name)

        assert EnvironmentValidator(env_source).validate_environment().valid is True

    def test_one_error_per_violation(self):
        result = EnvironmentValidator({}).validate_environment()

        assert sorted(e.context["variable"] for e in result.errors) == [
            "DATABASE_URL",
            "NEXTAUTH_SECRET",
            "NEXTAUTH_URL",
        ]


@pytest.mark.unit
class TestGetEnvVar:
    """Tests for get_env_var."""

    def test_returns_configured_value(self, env_source):
        assert EnvironmentValidator(env_source).get_env_var("EMAIL_SERVER") == "smtp.example.com"

    def test_fallback_when_unset(self, env_source):
        del env_source["EMAIL_SERVER"]
        validator = EnvironmentValidator(env_source)

        assert validator.get_env_var("EMAIL_SERVER", "smtp.fallback.com") == "smtp.fallback.com"

    def test_fallback_when_blank(self, env_source):
        env_source["EMAIL_PORT"] = ""

        assert EnvironmentValidator(env_source).get_env_var("EMAIL_PORT", "587") == "587"

    def test_missing_required_raises(self, env_source):
        del env_source["DATABASE_URL"]

        with pytest.raises(ConfigurationError) as exc_info:
            EnvironmentValidator(env_source).get_env_var("DATABASE_URL")

        assert exc_info.value.context == {"variable": "DATABASE_URL"}
        assert exc_info.value.severity == ErrorSeverity.HIGH

    def test_missing_optional_returns_empty_string(self, env_source):
        assert EnvironmentValidator(env_source).get_env_var("CRON_SECRET") == ""


@pytest.mark.unit
class TestEnvironmentRecovery:
    """Tests for the environment recovery strategy."""

    async def test_applies_known_default(self, env_source):
        validator = EnvironmentValidator(env_source)
        error = create_app_error(
            "Missing PORT",
            category=ErrorCategory.ENVIRONMENT,
            context={"variable": "PORT"},
        )

        assert await validator.recover(error) is True
        assert env_source["PORT"] == "3000"

    async def test_unknown_variable_is_not_recovered(self, env_source):
        del env_source["DATABASE_URL"]
        validator = EnvironmentValidator(env_source)

        assert await validator.recover(ConfigurationError("DATABASE_URL")) is False
        assert "DATABASE_URL" not in env_source

    async def test_existing_value_is_not_overwritten(self, env_source):
        env_source["EMAIL_PORT"] = "2525"
        validator = EnvironmentValidator(env_source)
        error = create_app_error("bad port", context={"variable": "EMAIL_PORT"})

        assert await validator.recover(error) is False
        assert env_source["EMAIL_PORT"] == "2525"

    async def test_error_without_variable(self, env_source):
        validator = EnvironmentValidator(env_source)

        assert await validator.recover(create_app_error("no context")) is False
