"""Jinja2 rendering for transactional email bodies."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

from eviction_crm.core.exceptions import AppError
from eviction_crm.models.schemas.deployment import DeploymentInfo, DeploymentStatus
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

STATUS_COLORS: Dict[DeploymentStatus, str] = {
    DeploymentStatus.PENDING: "#6c757d",
    DeploymentStatus.IN_PROGRESS: "#007bff",
    DeploymentStatus.COMPLETED: "#28a745",
    DeploymentStatus.FAILED: "#dc3545",
    DeploymentStatus.ROLLED_BACK: "#fd7e14",
}


class EmailTemplateRenderer:
    """Renders Jinja2-based email templates from the package templates directory."""

    def __init__(self, templates_dir: Path = TEMPLATES_DIR) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self._env.filters["datetime"] = lambda value: value.strftime("%Y-%m-%d %H:%M:%S %Z")

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self._env.get_template(template_name)
        except Exception as exc:
            logger.error(f"Email template '{template_name}' not found: {exc}")
            raise

        try:
            return template.render(**context)
        except Exception as exc:
            logger.error(f"Failed to render template '{template_name}': {exc}")
            raise

    def render_deployment_status(self, deployment: DeploymentInfo) -> str:
        """HTML body describing a deployment's status and event log."""
        return self.render(
            "deployment_status.html",
            {
                "deployment": deployment,
                "status_color": STATUS_COLORS.get(deployment.status, "#6c757d"),
                "duration": deployment.duration_seconds,
            },
        )

    def render_error_notification(self, error: AppError) -> str:
        return self.render("error_notification.html", {"error": error.to_dict()})

    def render_test_email(self, sent_at: datetime) -> str:
        return self.render("test_email.html", {"sent_at": sent_at})
