"""Tests for deployment notifications and email templates."""

import pytest

from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.core.error_handler import ErrorHandler
from eviction_crm.core.exceptions import create_app_error
from eviction_crm.models.schemas.deployment import (
    DeploymentEvent,
    DeploymentEventType,
    DeploymentInfo,
    DeploymentStatus,
)
from eviction_crm.services.deployment.notifier import (
    EmailDeploymentNotifier,
    NullNotifier,
    parse_admin_addresses,
)
from eviction_crm.services.email.service import EmailService
from eviction_crm.services.email.templates import EmailTemplateRenderer


@pytest.fixture
def deployment(clock) -> DeploymentInfo:
    return DeploymentInfo(
        id="deploy-1705314600000-7",
        version="2.1.0",
        environment="production",
        start_time=clock(),
        end_time=clock.advance(90),
        status=DeploymentStatus.FAILED,
        events=[
            DeploymentEvent(type=DeploymentEventType.STARTED, timestamp=clock(), message="started"),
            DeploymentEvent(type=DeploymentEventType.FAILED, timestamp=clock(), message="<b>boom</b>"),
        ],
        error_count=1,
    )


@pytest.fixture
def notifier_for(transport):
    def build(env_source):
        env = EnvironmentValidator(env_source)
        email = EmailService(ErrorHandler(), env=env, transport_factory=lambda e: transport)
        return EmailDeploymentNotifier(email, env)

    return build


@pytest.mark.unit
class TestParseAdminAddresses:
    def test_splits_and_trims(self):
        assert parse_admin_addresses(" a@example.com, b@example.com ,,") == [
            "a@example.com",
            "b@example.com",
        ]

    def test_empty(self):
        assert parse_admin_addresses("") == []


@pytest.mark.unit
class TestEmailDeploymentNotifier:
    """Tests for EmailDeploymentNotifier."""

    async def test_one_email_per_admin(self, notifier_for, env_source, transport, deployment):
        env_source["ADMIN_EMAIL_ADDRESSES"] = "ops@example.com, cto@example.com"

        await notifier_for(env_source).notify(deployment, "Deployment Failed")

        assert [m["To"] for m in transport.sent] == ["ops@example.com", "cto@example.com"]
        assert all(m["Subject"] == "[production] Deployment Failed: 2.1.0" for m in transport.sent)
        html = transport.sent[0].get_body(preferencelist=("html",)).get_content()
        assert "deploy-1705314600000-7" in html
        assert "90 seconds" in html

    async def test_skips_without_admins(self, notifier_for, env_source, transport, deployment):
        del env_source["ADMIN_EMAIL_ADDRESSES"]

        await notifier_for(env_source).notify(deployment, "Deployment Failed")

        assert transport.calls == 0

    async def test_send_errors_are_swallowed(self, env_source, deployment):
        class BrokenEmailService:
            async def send_email(self, payload):
                raise RuntimeError("renderer exploded")

        notifier = EmailDeploymentNotifier(BrokenEmailService(), EnvironmentValidator(env_source))

        await notifier.notify(deployment, "Deployment Failed")

    async def test_null_notifier(self, deployment):
        assert await NullNotifier().notify(deployment, "Deployment Started") is None


@pytest.mark.unit
class TestEmailTemplateRenderer:
    """Tests for the Jinja2 templates."""

    def test_deployment_status_escapes_event_messages(self, deployment):
        html = EmailTemplateRenderer().render_deployment_status(deployment)

        assert "Deployment Status Update" in html
        assert "failed" in html
        assert "#dc3545" in html
        assert "&lt;b&gt;boom&lt;/b&gt;" in html
        assert "<b>boom</b>" not in html

    def test_in_progress_has_no_end_time(self, deployment):
        running = deployment.model_copy(update={"end_time": None, "status": DeploymentStatus.IN_PROGRESS})

        html = EmailTemplateRenderer().render_deployment_status(running)

        assert "End Time" not in html
        assert "Duration" not in html

    def test_error_notification(self):
        error = create_app_error("Test email error", recoverable=False)

        html = EmailTemplateRenderer().render_error_notification(error)

        assert "Test email error" in html
        assert "<strong>Recoverable:</strong> No" in html
