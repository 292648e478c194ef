"""
Deployment lifecycle tracking.

A deployment moves through an explicit transition table:

    pending -> in_progress -> completed
                          \\-> failed -> rolled_back

``completed`` and ``rolled_back`` are terminal. A successful completion
empties the current slot; a failed deployment stays in the slot until it is
rolled back or replaced by the next ``init_deployment``, so that
``rollback_deployment`` has something to act on. Every finished deployment is
pushed onto a bounded, newest-first history.
"""

import logging
import random
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, FrozenSet, List, Optional

from eviction_crm.core.config import settings
from eviction_crm.core.error_handler import ErrorHandler
from eviction_crm.core.exceptions import (
    AppError,
    ErrorCategory,
    ErrorSeverity,
    InvalidTransitionError,
    JsonMap,
    create_app_error,
)
from eviction_crm.models.schemas.deployment import (
    ERROR_EVENT_TYPES,
    DeploymentEvent,
    DeploymentEventType,
    DeploymentInfo,
    DeploymentStatus,
)
from eviction_crm.observability.logging import ContextFilter, get_logger, log_event
from eviction_crm.observability.metrics import metrics
from eviction_crm.services.deployment.notifier import DeploymentNotifier, NullNotifier

logger = get_logger(__name__)

TRANSITIONS: Dict[DeploymentStatus, FrozenSet[DeploymentStatus]] = {
    DeploymentStatus.PENDING: frozenset(
        {DeploymentStatus.IN_PROGRESS, DeploymentStatus.COMPLETED, DeploymentStatus.FAILED}
    ),
    DeploymentStatus.IN_PROGRESS: frozenset({DeploymentStatus.COMPLETED, DeploymentStatus.FAILED}),
    DeploymentStatus.FAILED: frozenset({DeploymentStatus.ROLLED_BACK}),
    DeploymentStatus.COMPLETED: frozenset(),
    DeploymentStatus.ROLLED_BACK: frozenset(),
}

ACTIVE_STATUSES = frozenset({DeploymentStatus.PENDING, DeploymentStatus.IN_PROGRESS})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_deployment_id(now: datetime) -> str:
    """deploy-<epoch ms>-<0..999>"""
    return f"deploy-{int(now.timestamp() * 1000)}-{random.randint(0, 999)}"


def check_transition(deployment: DeploymentInfo, target: DeploymentStatus) -> None:
    """Raise InvalidTransitionError unless ``target`` is reachable from the current status."""
    if target not in TRANSITIONS[deployment.status]:
        raise InvalidTransitionError(deployment.id, deployment.status.value, target.value)


class DeploymentMonitor:
    """Tracks the current deployment, its event log and recent history."""

    def __init__(
        self,
        notifier: Optional[DeploymentNotifier] = None,
        error_handler: Optional[ErrorHandler] = None,
        history_size: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._notifier = notifier or NullNotifier()
        self._error_handler = error_handler or ErrorHandler()
        self.history_size = history_size or settings.DEPLOYMENT_HISTORY_SIZE
        self._clock = clock or _utcnow

        self._lock = threading.RLock()
        self._current: Optional[DeploymentInfo] = None
        self._history: Deque[DeploymentInfo] = deque(maxlen=self.history_size)

    def _set_status(self, deployment: DeploymentInfo, target: DeploymentStatus) -> None:
        check_transition(deployment, target)
        deployment.status = target

    def _append_event(
        self,
        deployment: DeploymentInfo,
        event_type: DeploymentEventType,
        message: str,
        data: Optional[JsonMap] = None,
    ) -> DeploymentEvent:
        event = DeploymentEvent(
            type=event_type,
            timestamp=self._clock(),
            message=message,
            data=data,
        )
        deployment.events.append(event)
        if event_type in ERROR_EVENT_TYPES:
            deployment.error_count += 1

        metrics.record_deployment_event(event_type.value)
        log_event(
            logger,
            logging.INFO,
            f"Deployment event: {event_type.value}",
            deployment_id=deployment.id,
            event=event.model_dump(mode="json"),
        )
        return event

    def _refresh_history(self, snapshot: DeploymentInfo) -> None:
        for index, entry in enumerate(self._history):
            if entry.id == snapshot.id:
                self._history[index] = snapshot
                return
        self._history.appendleft(snapshot)

    async def init_deployment(
        self,
        version: str,
        environment: str,
        notify_admins: bool = False,
    ) -> DeploymentInfo:
        """
        Start tracking a new deployment.

        Args:
            version: Version being deployed
            environment: Target environment name
            notify_admins: Email the admins that the deployment started

        Returns:
            Copy of the new in-progress deployment
        """
        now = self._clock()
        with self._lock:
            if self._current is not None:
                logger.warning(
                    f"Replacing deployment {self._current.id} "
                    f"({self._current.status.value}) with a new deployment"
                )

            deployment = DeploymentInfo(
                id=generate_deployment_id(now),
                version=version,
                environment=environment,
                start_time=now,
            )
            self._set_status(deployment, DeploymentStatus.IN_PROGRESS)
            self._current = deployment

            ContextFilter.set_deployment_id(deployment.id)
            log_event(
                logger,
                logging.INFO,
                f"Deployment started: {deployment.id}",
                deployment=deployment.model_dump(mode="json"),
            )
            self._append_event(
                deployment,
                DeploymentEventType.STARTED,
                f"Deployment of version {version} to {environment} started",
            )
            snapshot = deployment.model_copy(deep=True)

        if notify_admins:
            await self._notifier.notify(snapshot, "Deployment Started")
        return snapshot

    def add_event(
        self,
        event_type: DeploymentEventType,
        message: str,
        data: Optional[JsonMap] = None,
    ) -> Optional[DeploymentEvent]:
        """Append an event to the current deployment. No-op if there is none."""
        with self._lock:
            if self._current is None:
                logger.warning("Attempted to add deployment event but no deployment is in progress")
                return None
            event = self._append_event(self._current, DeploymentEventType(event_type), message, data)
            return event.model_copy(deep=True)

    async def complete_deployment(
        self,
        success: bool,
        message: Optional[str] = None,
    ) -> Optional[DeploymentInfo]:
        """
        Finish the current deployment.

        Args:
            success: True for completed, False for failed
            message: Event message (defaults to a generic one)

        Returns:
            Copy of the finished deployment, or None if nothing was in progress
        """
        with self._lock:
            current = self._current
            if current is None:
                logger.warning("Attempted to complete deployment but no deployment is in progress")
                return None
            if current.status not in ACTIVE_STATUSES:
                logger.warning(
                    f"Attempted to complete deployment {current.id} "
                    f"which already finished with status {current.status.value}"
                )
                return None

            target = DeploymentStatus.COMPLETED if success else DeploymentStatus.FAILED
            self._set_status(current, target)
            current.end_time = self._clock()
            self._append_event(
                current,
                DeploymentEventType.COMPLETED if success else DeploymentEventType.FAILED,
                message or f"Deployment {'completed successfully' if success else 'failed'}",
            )

            log_event(
                logger,
                logging.INFO if success else logging.ERROR,
                f"Deployment {'completed' if success else 'failed'}: {current.id}",
                deployment=current.model_dump(mode="json"),
            )

            snapshot = current.model_copy(deep=True)
            self._history.appendleft(snapshot.model_copy(deep=True))
            if success:
                self._current = None
                ContextFilter.clear_deployment_id()

        metrics.record_deployment(snapshot.environment, target.value)
        await self._notifier.notify(
            snapshot,
            "Deployment Completed Successfully" if success else "Deployment Failed",
        )
        return snapshot

    async def rollback_deployment(self, reason: str) -> bool:
        """
        Roll back the current deployment if it failed.

        Args:
            reason: Why the rollback was triggered

        Returns:
            True if the deployment was rolled back
        """
        deployment_id: Optional[str] = None
        try:
            with self._lock:
                current = self._current
                if current is None or current.status != DeploymentStatus.FAILED:
                    logger.warning("Attempted to roll back deployment but no failed deployment exists")
                    return False

                deployment_id = current.id
                log_event(logger, logging.INFO, f"Rolling back deployment: {current.id}", reason=reason)

                self._set_status(current, DeploymentStatus.ROLLED_BACK)
                self._append_event(
                    current,
                    DeploymentEventType.ROLLED_BACK,
                    f"Deployment rolled back: {reason}",
                )
                snapshot = current.model_copy(deep=True)
                self._refresh_history(snapshot.model_copy(deep=True))
                self._current = None
                ContextFilter.clear_deployment_id()
        except Exception as exc:
            error = create_app_error(
                f"Failed to roll back deployment: {exc}",
                severity=ErrorSeverity.CRITICAL,
                category=ErrorCategory.DEPLOYMENT,
                cause=exc,
                context={"deployment_id": deployment_id},
            )
            await self._error_handler.handle_error(error)
            return False

        metrics.record_deployment(snapshot.environment, DeploymentStatus.ROLLED_BACK.value)
        await self._notifier.notify(snapshot, "Deployment Rolled Back")
        return True

    async def mark_failed(self, error: AppError) -> bool:
        """Deployment recovery strategy: fail the deployment that is still running."""
        with self._lock:
            current = self._current
            if current is None or current.status not in ACTIVE_STATUSES:
                return False

        logger.info(f"Attempting deployment recovery: marking {current.id} as failed")
        finished = await self.complete_deployment(False, f"Deployment failed: {error.message}")
        return finished is not None

    def get_current_deployment(self) -> Optional[DeploymentInfo]:
        with self._lock:
            if self._current is None:
                return None
            return self._current.model_copy(deep=True)

    def get_deployment_history(self) -> List[DeploymentInfo]:
        """Finished deployments, newest first."""
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._history]
