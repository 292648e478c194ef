"""Admin notifications for deployment status changes."""

from typing import List, Optional, Protocol

from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.models.schemas.deployment import DeploymentInfo
from eviction_crm.models.schemas.email import EmailPayload
from eviction_crm.observability.logging import get_logger
from eviction_crm.services.email.service import EmailService
from eviction_crm.services.email.templates import EmailTemplateRenderer

logger = get_logger(__name__)


class DeploymentNotifier(Protocol):
    """Receives deployment status changes."""

    async def notify(self, deployment: DeploymentInfo, subject: str) -> None:
        ...


class NullNotifier:
    """Notifier that discards every notification."""

    async def notify(self, deployment: DeploymentInfo, subject: str) -> None:
        return None


def parse_admin_addresses(raw: str) -> List[str]:
    """Split a comma-separated address list, skipping blanks."""
    return [address.strip() for address in raw.split(",") if address.strip()]


class EmailDeploymentNotifier:
    """Emails every address in ADMIN_EMAIL_ADDRESSES about a deployment."""

    def __init__(
        self,
        email_service: EmailService,
        env: Optional[EnvironmentValidator] = None,
        renderer: Optional[EmailTemplateRenderer] = None,
    ):
        self._email = email_service
        self._env = env or EnvironmentValidator()
        self._renderer = renderer or EmailTemplateRenderer()

    async def notify(self, deployment: DeploymentInfo, subject: str) -> None:
        """
        Send the status email. Failures are logged, never raised.

        Args:
            deployment: Snapshot of the deployment to report
            subject: Short status line, e.g. "Deployment Failed"
        """
        try:
            addresses = parse_admin_addresses(self._env.get_env_var("ADMIN_EMAIL_ADDRESSES"))
            if not addresses:
                logger.warning("No admin email addresses configured for deployment notifications")
                return

            html = self._renderer.render_deployment_status(deployment)
            full_subject = f"[{deployment.environment}] {subject}: {deployment.version}"

            for address in addresses:
                await self._email.send_email(
                    EmailPayload(to=address, subject=full_subject, html=html)
                )

            logger.info(f"Sent deployment status notifications to {len(addresses)} admins")
        except Exception as e:
            logger.error(f"Failed to send deployment status notifications: {e}")
