"""Environment variable validation with fallback recovery.

The catalog below lists every variable the CRM reads from the environment at
runtime. ``validate_environment`` is run at startup and by the admin health
check; ``get_env_var`` is the accessor used by the email transport and the
database layer.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, MutableMapping, Optional

from eviction_crm.core.exceptions import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    create_app_error,
)
from eviction_crm.observability.logging import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnvVarRule:
    """Validation rule for one environment variable."""

    name: str
    required: bool
    validator: Optional[Callable[[str], bool]] = None
    error_message: Optional[str] = None


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


ENV_VAR_CATALOG: List[EnvVarRule] = [
    EnvVarRule(
        name="DATABASE_URL",
        required=True,
        validator=lambda v: "://" in v,
        error_message="DATABASE_URL must be a valid connection string",
    ),
    EnvVarRule(
        name="NEXTAUTH_SECRET",
        required=True,
        validator=lambda v: len(v) >= 32,
        error_message="NEXTAUTH_SECRET should be at least 32 characters long for security",
    ),
    EnvVarRule(
        name="NEXTAUTH_URL",
        required=True,
        validator=lambda v: v.startswith("http"),
        error_message="NEXTAUTH_URL must be a valid URL starting with http:// or https://",
    ),
    EnvVarRule(name="EMAIL_SERVER", required=False),
    EnvVarRule(
        name="EMAIL_PORT",
        required=False,
        validator=_is_number,
        error_message="EMAIL_PORT must be a valid number",
    ),
    EnvVarRule(name="EMAIL_USER", required=False),
    EnvVarRule(name="EMAIL_PASSWORD", required=False),
    EnvVarRule(
        name="EMAIL_FROM",
        required=False,
        validator=lambda v: "@" in v,
        error_message="EMAIL_FROM must be a valid email address",
    ),
    EnvVarRule(name="CRON_SECRET", required=False),
    EnvVarRule(
        name="ADMIN_EMAIL_ADDRESSES",
        required=False,
        validator=lambda v: "@" in v,
        error_message="ADMIN_EMAIL_ADDRESSES must contain valid email addresses separated by commas",
    ),
]

# Safe defaults applied by environment recovery (non-critical variables only)
ENV_DEFAULTS: Dict[str, str] = {
    "APP_ENV": "development",
    "PORT": "3000",
    "TASK_REMINDER_DAYS": "2",
    "EMAIL_PORT": "587",
    "EMAIL_SECURE": "false",
}


@dataclass
class EnvValidationResult:
    """Outcome of a full catalog check."""

    valid: bool
    errors: List[AppError] = field(default_factory=list)


class EnvironmentValidator:
    """Validates and reads configuration from an environment mapping."""

    def __init__(
        self,
        source: Optional[MutableMapping[str, str]] = None,
        catalog: Optional[List[EnvVarRule]] = None,
        defaults: Optional[Dict[str, str]] = None,
    ):
        self.source = os.environ if source is None else source
        self.catalog = ENV_VAR_CATALOG if catalog is None else catalog
        self.defaults = ENV_DEFAULTS if defaults is None else defaults
        self._rules = {rule.name: rule for rule in self.catalog}

    def _value(self, name: str) -> Optional[str]:
        value = self.source.get(name)
        if value is None or value.strip() == "":
            return None
        return value

    def validate_environment(self) -> EnvValidationResult:
        """Check every catalogued variable and collect one error per violation."""
        errors: List[AppError] = []

        for rule in self.catalog:
            value = self._value(rule.name)

            if value is None:
                if rule.required:
                    errors.append(
                        create_app_error(
                            f"Missing required environment variable: {rule.name}",
                            severity=ErrorSeverity.HIGH,
                            category=ErrorCategory.ENVIRONMENT,
                            context={"variable": rule.name},
                        )
                    )
                continue

            if rule.validator is not None and not rule.validator(value):
                errors.append(
                    create_app_error(
                        rule.error_message
                        or f"Invalid value for environment variable: {rule.name}",
                        severity=ErrorSeverity.MEDIUM,
                        category=ErrorCategory.ENVIRONMENT,
                        context={"variable": rule.name},
                    )
                )

        if errors:
            log_event(
                logger,
                logging.ERROR,
                f"Environment validation failed with {len(errors)} errors",
                errors=[e.to_dict() for e in errors],
            )
            return EnvValidationResult(valid=False, errors=errors)

        logger.info("Environment validation successful")
        return EnvValidationResult(valid=True)

    def get_env_var(self, name: str, fallback: Optional[str] = None) -> str:
        """
        Read a configuration value.

        Args:
            name: Variable name
            fallback: Value to use when the variable is unset or blank

        Returns:
            The configured value, the fallback, or "" for optional variables

        Raises:
            ConfigurationError: If the variable is required and has no fallback
        """
        value = self._value(name)
        if value is not None:
            return value

        if fallback is not None:
            logger.warning(f"Using fallback value for environment variable: {name}")
            return fallback

        rule = self._rules.get(name)
        if rule is not None and rule.required:
            logger.error(f"Missing required environment variable: {name}")
            raise ConfigurationError(name)

        return ""

    async def recover(self, error: AppError) -> bool:
        """Environment recovery strategy: apply a known default for the variable."""
        logger.info(f"Attempting environment configuration recovery: {error.message}")
        variable = error.context.get("variable")
        if not isinstance(variable, str) or variable not in self.defaults:
            return False
        # Never overwrite a value an operator has set
        if self._value(variable) is not None:
            return False

        self.source[variable] = self.defaults[variable]
        logger.warning(f"Applied default value for environment variable: {variable}")
        return True


def validate_environment() -> EnvValidationResult:
    """Validate the process environment against the catalog."""
    return EnvironmentValidator().validate_environment()


def get_env_var(name: str, fallback: Optional[str] = None) -> str:
    """Read a variable from the process environment (see EnvironmentValidator.get_env_var)."""
    return EnvironmentValidator().get_env_var(name, fallback)
