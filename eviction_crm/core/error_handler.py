"""Error classification and recovery.

``ErrorHandler.handle_error`` is the single entry point for failures:

    created -> logged -> (recoverable) recovery attempted -> resolved

Recovery strategies are keyed by ``ErrorCategory``. Every category starts out
mapped to ``no_recovery``; the component that owns the affected state
registers the real strategy at wiring time (see ``services/ops.py``).
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from eviction_crm.core.exceptions import (
    AppError,
    ErrorCategory,
    ErrorSeverity,
    create_app_error,
)
from eviction_crm.core.retry import BackoffPolicy, retry_with_backoff
from eviction_crm.observability.logging import get_logger, log_event
from eviction_crm.observability.metrics import metrics

logger = get_logger(__name__)

RecoveryStrategy = Callable[[AppError], Awaitable[bool]]

SEVERITY_LOG_LEVELS: Dict[ErrorSeverity, int] = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

SEVERITY_LOG_MESSAGES: Dict[ErrorSeverity, str] = {
    ErrorSeverity.LOW: "Application error (low severity)",
    ErrorSeverity.MEDIUM: "Application error (medium severity)",
    ErrorSeverity.HIGH: "Application error (high severity)",
    ErrorSeverity.CRITICAL: "CRITICAL APPLICATION ERROR",
}


async def no_recovery(error: AppError) -> bool:
    """Strategy for categories that cannot self-heal."""
    return False


def make_reconnect_strategy(
    reconnect: Callable[[], Awaitable[Any]],
    policy: Optional[BackoffPolicy] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> RecoveryStrategy:
    """
    Build the database recovery strategy around a reconnect coroutine.

    Args:
        reconnect: Coroutine function that raises while the database is down
        policy: Retry policy (defaults to the DB_RECONNECT_* settings)
        sleep: Override for the wait between attempts (tests)

    Returns:
        Strategy returning True on the first attempt that does not raise
    """
    policy = policy or BackoffPolicy.for_database()

    async def recover_database(error: AppError) -> bool:
        logger.info(f"Attempting database recovery: {error.message}")
        kwargs = {"sleep": sleep} if sleep is not None else {}
        try:
            await retry_with_backoff(reconnect, policy, **kwargs)
        except Exception as e:
            logger.error(f"Database recovery failed: {e}")
            return False
        logger.info("Database connection re-established")
        return True

    return recover_database


class ErrorHandler:
    """Logs application errors and dispatches category-specific recovery."""

    def __init__(self):
        self._strategies: Dict[ErrorCategory, RecoveryStrategy] = {
            category: no_recovery for category in ErrorCategory
        }

    def register_strategy(self, category: ErrorCategory, strategy: RecoveryStrategy) -> None:
        """Install the recovery strategy for a category, replacing the current one."""
        self._strategies[ErrorCategory(category)] = strategy

    def strategy_for(self, category: ErrorCategory) -> RecoveryStrategy:
        return self._strategies[ErrorCategory(category)]

    async def handle_error(self, error: BaseException) -> bool:
        """
        Log an error and attempt recovery at most once.

        Args:
            error: An AppError, or any exception (wrapped with category unknown)

        Returns:
            Whether recovery succeeded. An error that was already handled
            returns its cached result without a second attempt.
        """
        app_error = self.normalize(error)
        self._log_error(app_error)
        metrics.record_app_error(app_error.category.value, app_error.severity.value)

        if app_error.recovery_attempted:
            return bool(app_error.recovery_successful)
        if not app_error.recoverable:
            return False

        app_error.recovery_attempted = True
        strategy = self._strategies[app_error.category]
        try:
            recovered = bool(await strategy(app_error))
        except Exception as recovery_error:
            log_event(
                logger,
                logging.ERROR,
                "Recovery attempt failed",
                original_error=app_error.to_dict(),
                recovery_error=f"{type(recovery_error).__name__}: {recovery_error}",
            )
            recovered = False

        app_error.recovery_successful = recovered
        metrics.record_recovery(app_error.category.value, recovered)
        return recovered

    @staticmethod
    def normalize(error: BaseException) -> AppError:
        """Return ``error`` as an AppError, wrapping plain exceptions."""
        if isinstance(error, AppError):
            return error
        return create_app_error(str(error) or type(error).__name__, cause=error)

    @staticmethod
    def _log_error(error: AppError) -> None:
        data = error.to_dict()
        data["stack"] = error.trace
        log_event(
            logger,
            SEVERITY_LOG_LEVELS[error.severity],
            SEVERITY_LOG_MESSAGES[error.severity],
            error=data,
        )
