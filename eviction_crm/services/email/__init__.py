"""Transactional email: SMTP transport, templates and the retry queue."""

from eviction_crm.services.email.service import EmailResult, EmailService, QueuedEmail
from eviction_crm.services.email.templates import EmailTemplateRenderer
from eviction_crm.services.email.transport import (
    MailTransport,
    SmtpConfig,
    SmtpTransport,
    create_smtp_transport,
    is_transient_error,
)

__all__ = [
    "EmailResult",
    "EmailService",
    "EmailTemplateRenderer",
    "MailTransport",
    "QueuedEmail",
    "SmtpConfig",
    "SmtpTransport",
    "create_smtp_transport",
    "is_transient_error",
]
