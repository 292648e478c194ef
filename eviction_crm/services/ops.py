"""Process-wide wiring of the operational services.

One ``OpsServices`` container is built per process. Building it is the only
place recovery strategies get registered, so each strategy is owned by the
component whose state it repairs.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, MutableMapping, Optional

from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.core.error_handler import ErrorHandler, make_reconnect_strategy
from eviction_crm.core.exceptions import ErrorCategory
from eviction_crm.models.database import reconnect_db
from eviction_crm.observability.logging import get_logger
from eviction_crm.services.deployment.monitor import DeploymentMonitor
from eviction_crm.services.deployment.notifier import DeploymentNotifier, EmailDeploymentNotifier
from eviction_crm.services.email.service import EmailService, TransportFactory

logger = get_logger(__name__)


@dataclass
class OpsServices:
    """The stateful operational components of one process."""

    error_handler: ErrorHandler
    env_validator: EnvironmentValidator
    email_service: EmailService
    deployment_monitor: DeploymentMonitor

    async def shutdown(self) -> None:
        await self.email_service.shutdown()


def build_ops_services(
    env_source: Optional[MutableMapping[str, str]] = None,
    transport_factory: Optional[TransportFactory] = None,
    notifier: Optional[DeploymentNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
    reconnect_database=reconnect_db,
) -> OpsServices:
    """
    Build and wire the operational services.

    Args:
        env_source: Mapping to read configuration from (defaults to os.environ)
        transport_factory: Mail transport factory (defaults to SMTP)
        notifier: Deployment notifier (defaults to emailing the admins)
        clock: Time source shared by the email queue and deployment monitor
        reconnect_database: Coroutine function used by database recovery

    Returns:
        Wired OpsServices
    """
    error_handler = ErrorHandler()
    env_validator = EnvironmentValidator(env_source) if env_source is not None else EnvironmentValidator()

    email_service = EmailService(
        error_handler,
        env=env_validator,
        transport_factory=transport_factory,
        clock=clock,
    )
    monitor = DeploymentMonitor(
        notifier=notifier or EmailDeploymentNotifier(email_service, env_validator),
        error_handler=error_handler,
        clock=clock,
    )

    error_handler.register_strategy(ErrorCategory.DATABASE, make_reconnect_strategy(reconnect_database))
    error_handler.register_strategy(ErrorCategory.EMAIL, email_service.recover)
    error_handler.register_strategy(ErrorCategory.DEPLOYMENT, monitor.mark_failed)
    error_handler.register_strategy(ErrorCategory.ENVIRONMENT, env_validator.recover)

    logger.info("Operational services initialized")
    return OpsServices(
        error_handler=error_handler,
        env_validator=env_validator,
        email_service=email_service,
        deployment_monitor=monitor,
    )


# Global instance
_ops_services: Optional[OpsServices] = None


def get_ops_services() -> OpsServices:
    """Get the process-wide services, building them on first use."""
    global _ops_services
    if _ops_services is None:
        _ops_services = build_ops_services()
    return _ops_services


async def shutdown_ops_services() -> None:
    """Stop background work and forget the process-wide services."""
    global _ops_services
    if _ops_services is not None:
        await _ops_services.shutdown()
        _ops_services = None
