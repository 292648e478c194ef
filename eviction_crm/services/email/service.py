"""Email dispatch with transient-failure retry.

``send_email`` makes exactly one delivery attempt and never waits for
retries. When the failure looks temporary the payload goes onto an in-memory
retry queue, which a background task drains every half retry interval:

- items younger than the retry interval stay queued
- items that already used ``max_attempts`` retries are dropped (warning)
- everything else is re-sent once; a renewed failure re-queues it with
  ``attempts + 1``

The queue is process memory only and is lost on restart.
"""

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Callable, List, Optional

from eviction_crm.core.config import settings
from eviction_crm.core.env_validator import EnvironmentValidator
from eviction_crm.core.error_handler import ErrorHandler
from eviction_crm.core.exceptions import AppError, ErrorCategory, ErrorSeverity, create_app_error
from eviction_crm.models.schemas.email import (
    EmailPayload,
    EmailQueueStatus,
    QueuedEmailStatus,
    Recipients,
)
from eviction_crm.observability.logging import get_logger, log_event
from eviction_crm.observability.metrics import metrics
from eviction_crm.services.email.transport import (
    MailTransport,
    create_smtp_transport,
    is_transient_error,
)

logger = get_logger(__name__)

DEFAULT_FROM_ADDRESS = "Proactive Eviction CRM <noreply@proactiveeviction.com>"
PLAIN_TEXT_FALLBACK = "View this email in an HTML-capable client."

TransportFactory = Callable[[EnvironmentValidator], MailTransport]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _join(recipients: Recipients) -> str:
    if isinstance(recipients, str):
        return recipients
    return ", ".join(recipients)


@dataclass
class EmailResult:
    """Outcome of a single send."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[BaseException] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message_id": self.message_id,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass
class QueuedEmail:
    """An email waiting for another delivery attempt."""

    payload: EmailPayload
    attempts: int
    last_attempt: datetime
    max_attempts: int


class EmailService:
    """Sends transactional email and owns the retry queue."""

    def __init__(
        self,
        error_handler: ErrorHandler,
        env: Optional[EnvironmentValidator] = None,
        transport_factory: Optional[TransportFactory] = None,
        retry_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self._error_handler = error_handler
        self._env = env or EnvironmentValidator()
        self._transport_factory = transport_factory or create_smtp_transport
        self._transport: Optional[MailTransport] = None
        self._transport_lock = threading.Lock()

        self.retry_interval = (
            settings.EMAIL_RETRY_INTERVAL_S if retry_interval is None else retry_interval
        )
        self.max_attempts = settings.EMAIL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self._clock = clock or _utcnow

        self._queue: List[QueuedEmail] = []
        self._queue_lock = threading.Lock()
        self._retry_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_transport(self) -> MailTransport:
        with self._transport_lock:
            if self._transport is None:
                self._transport = self._transport_factory(self._env)
            return self._transport

    def reset_transporter(self) -> None:
        """Drop the cached transport so the next send rebuilds it from config."""
        with self._transport_lock:
            self._transport = None
        logger.info("Email transport reset")

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    @staticmethod
    def validate_payload(payload: EmailPayload) -> Optional[str]:
        """Return a problem description, or None if the payload can be sent."""
        to = payload.to
        if not to or (isinstance(to, list) and not any(addr.strip() for addr in to)):
            return "Email recipient is required"
        if isinstance(to, str) and not to.strip():
            return "Email recipient is required"
        if not payload.subject:
            return "Email subject is required"
        if not payload.html:
            return "Email content is required"
        return None

    def build_message(self, payload: EmailPayload) -> EmailMessage:
        """Assemble the MIME message for a payload."""
        message = EmailMessage()
        message["From"] = self._env.get_env_var("EMAIL_FROM", DEFAULT_FROM_ADDRESS)
        message["To"] = _join(payload.to)
        if payload.cc:
            message["Cc"] = _join(payload.cc)
        if payload.bcc:
            message["Bcc"] = _join(payload.bcc)
        message["Subject"] = payload.subject

        message.set_content(PLAIN_TEXT_FALLBACK)
        message.add_alternative(payload.html, subtype="html")

        for attachment in payload.attachments or []:
            content = attachment.content
            if isinstance(content, str):
                content = content.encode("utf-8")
            maintype, _, subtype = (attachment.content_type or "application/octet-stream").partition("/")
            message.add_attachment(
                content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return message

    async def _deliver(self, payload: EmailPayload) -> str:
        message = self.build_message(payload)
        return await self._get_transport().send(message)

    async def send_email(self, payload: EmailPayload) -> EmailResult:
        """
        Send an email, queueing it for retry on transient failure.

        Args:
            payload: The email to send

        Returns:
            EmailResult with the message id on success, or the error
        """
        problem = self.validate_payload(payload)
        if problem is not None:
            error = create_app_error(
                problem,
                severity=ErrorSeverity.LOW,
                category=ErrorCategory.EMAIL,
                context={"subject": payload.subject},
                recoverable=False,
            )
            await self._error_handler.handle_error(error)
            return EmailResult(success=False, error=error)

        try:
            message_id = await self._deliver(payload)
        except Exception as exc:
            transient = is_transient_error(exc)
            metrics.record_email_failed(transient)
            if transient:
                self.queue_for_retry(payload)

            app_error = create_app_error(
                f"Failed to send email: {exc}",
                severity=ErrorSeverity.MEDIUM,
                category=ErrorCategory.EMAIL,
                cause=exc,
                context={
                    "to": payload.to,
                    "subject": payload.subject,
                    "queued_for_retry": transient,
                },
                recoverable=True,
            )
            await self._error_handler.handle_error(app_error)
            return EmailResult(success=False, error=exc)

        log_event(
            logger,
            logging.INFO,
            "Email sent successfully",
            to=payload.to,
            subject=payload.subject,
            message_id=message_id,
        )
        metrics.record_email_sent()
        return EmailResult(success=True, message_id=message_id)

    async def recover(self, error: AppError) -> bool:
        """Email recovery strategy.

        Succeeds when the failed payload is already waiting in the retry
        queue. Otherwise the cached transport is dropped so the next send
        reconnects with fresh settings.
        """
        if error.context.get("queued_for_retry"):
            logger.info("Email recovery deferred to the retry queue")
            return True
        logger.info("Attempting email service recovery: resetting transport")
        self.reset_transporter()
        return False

    # ------------------------------------------------------------------
    # Retry queue
    # ------------------------------------------------------------------

    @property
    def queue_length(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    def queue_for_retry(self, payload: EmailPayload, attempts: int = 0) -> None:
        """Put a payload on the retry queue and make sure the loop is running."""
        item = QueuedEmail(
            payload=payload,
            attempts=attempts,
            last_attempt=self._clock(),
            max_attempts=self.max_attempts,
        )
        with self._queue_lock:
            self._queue.append(item)
            size = len(self._queue)

        metrics.update_email_queue_depth(size)
        logger.info(f"Email queued for retry. Queue size: {size}")
        self._ensure_retry_loop()

    def _ensure_retry_loop(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, email retry loop not started")
            return
        self._retry_task = loop.create_task(self._run_retry_loop())

    async def _run_retry_loop(self) -> None:
        """Check the queue every half interval until it is empty."""
        while self.queue_length > 0:
            await asyncio.sleep(self.retry_interval / 2)
            try:
                await self.process_retry_queue()
            except Exception as e:
                logger.error(f"Error during email retry: {e}")

    async def process_retry_queue(self, now: Optional[datetime] = None) -> int:
        """
        Retry every queued email whose last attempt is at least one interval old.

        Args:
            now: Reference time (defaults to the service clock)

        Returns:
            Number of items taken off the queue in this pass
        """
        now = now or self._clock()
        interval = timedelta(seconds=self.retry_interval)

        with self._queue_lock:
            ready = [item for item in self._queue if now - item.last_attempt >= interval]
            for item in ready:
                self._queue.remove(item)

        for item in ready:
            payload = item.payload

            if item.attempts >= item.max_attempts:
                log_event(
                    logger,
                    logging.WARNING,
                    "Email retry max attempts reached, giving up",
                    to=payload.to,
                    subject=payload.subject,
                    attempts=item.attempts,
                )
                metrics.record_email_dropped()
                continue

            logger.info(f"Retrying email (attempt {item.attempts + 1}/{item.max_attempts})")
            try:
                message_id = await self._deliver(payload)
            except Exception as exc:
                error = create_app_error(
                    f"Email retry failed: {exc}",
                    severity=ErrorSeverity.LOW,
                    category=ErrorCategory.EMAIL,
                    cause=exc,
                    context={
                        "to": payload.to,
                        "subject": payload.subject,
                        "attempts": item.attempts + 1,
                    },
                    recoverable=False,
                )
                await self._error_handler.handle_error(error)
                self.queue_for_retry(payload, item.attempts + 1)
            else:
                log_event(
                    logger,
                    logging.INFO,
                    "Email sent successfully on retry",
                    to=payload.to,
                    subject=payload.subject,
                    message_id=message_id,
                    attempts=item.attempts + 1,
                )
                metrics.record_email_sent(retry=True)

        metrics.update_email_queue_depth(self.queue_length)
        return len(ready)

    def get_queue_status(self) -> EmailQueueStatus:
        """Read-only snapshot of the retry queue."""
        with self._queue_lock:
            items = list(self._queue)
        return EmailQueueStatus(
            queue_length=len(items),
            queued_emails=[
                QueuedEmailStatus(
                    to=item.payload.to,
                    subject=item.payload.subject,
                    attempts=item.attempts,
                    last_attempt=item.last_attempt,
                )
                for item in items
            ],
        )

    async def shutdown(self) -> None:
        """Cancel the retry loop. Queued emails are abandoned."""
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        abandoned = self.queue_length
        if abandoned:
            logger.warning(f"Email service stopped with {abandoned} queued emails abandoned")
