"""SMTP transport and transient-failure detection."""

import errno
import socket
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol

import aiosmtplib

from eviction_crm.core.config import settings
from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)

TRANSIENT_KEYWORDS = (
    "timeout",
    "connection",
    "network",
    "temporarily",
    "unavailable",
    "rate limit",
    "too many",
    "try again",
    "econnrefused",
    "etimedout",
    "enotfound",
)

TRANSIENT_ERRNOS = {errno.ECONNREFUSED, errno.ETIMEDOUT}

TRANSIENT_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    socket.gaierror,
    aiosmtplib.SMTPConnectError,
    aiosmtplib.SMTPTimeoutError,
    aiosmtplib.SMTPServerDisconnected,
)


def is_transient_error(error: Optional[BaseException]) -> bool:
    """
    Check whether a delivery failure is likely temporary.

    Connection, timeout and DNS failures, SMTP 4xx replies and messages that
    mention temporary conditions are all eligible for retry.
    """
    if error is None:
        return False

    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True

    if isinstance(error, aiosmtplib.SMTPResponseException) and 400 <= error.code < 500:
        return True

    if isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS:
        return True

    message = str(error).lower()
    return any(keyword in message for keyword in TRANSIENT_KEYWORDS)


class MailTransport(Protocol):
    """Anything able to deliver a message and return its id."""

    async def send(self, message: EmailMessage) -> str:
        ...


@dataclass(frozen=True)
class SmtpConfig:
    """Connection settings for the SMTP server."""

    host: str
    port: int
    secure: bool
    username: str
    password: str
    timeout: float

    @classmethod
    def from_env(cls, env: EnvironmentValidator) -> "SmtpConfig":
        """Read EMAIL_* variables, falling back to safe defaults."""
        return cls(
            host=env.get_env_var("EMAIL_SERVER", "smtp.example.com"),
            port=int(env.get_env_var("EMAIL_PORT", "587")),
            secure=env.get_env_var("EMAIL_SECURE", "false").lower() == "true",
            username=env.get_env_var("EMAIL_USER", ""),
            password=env.get_env_var("EMAIL_PASSWORD", ""),
            timeout=settings.EMAIL_CONNECTION_TIMEOUT_S,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.host and self.username and self.password)


class SmtpTransport:
    """Delivers messages through an SMTP server with aiosmtplib."""

    def __init__(self, config: SmtpConfig):
        self.config = config
        if not config.is_complete:
            logger.warning(
                "Incomplete email configuration. Email functionality may not work correctly."
            )

    async def send(self, message: EmailMessage) -> str:
        """Send one message, returning its Message-ID."""
        if "Message-ID" not in message:
            message["Message-ID"] = make_msgid()

        await aiosmtplib.send(
            message,
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username or None,
            password=self.config.password or None,
            use_tls=self.config.secure,
            # Implicit TLS and STARTTLS are mutually exclusive
            start_tls=False if self.config.secure else None,
            timeout=self.config.timeout,
        )
        return str(message["Message-ID"])


def create_smtp_transport(env: EnvironmentValidator) -> SmtpTransport:
    """Default transport factory used by the email service."""
    config = SmtpConfig.from_env(env)
    logger.info(
        f"SMTP transport configured (host={config.host}, port={config.port}, secure={config.secure})"
    )
    return SmtpTransport(config)
