"""Email payload and retry queue schemas."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Recipients = Union[str, List[str]]


class EmailAttachment(BaseModel):
    """File attached to an outgoing email."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Attachment file name")
    content: Union[bytes, str] = Field(..., description="Raw bytes or text content")
    content_type: Optional[str] = Field(None, description="MIME type, e.g. application/pdf")


class EmailPayload(BaseModel):
    """Outgoing transactional email."""

    model_config = ConfigDict(frozen=True)

    to: Recipients = Field(..., description="Recipient address or list of addresses")
    subject: str = Field(..., description="Subject line")
    html: str = Field(..., description="HTML body")
    cc: Optional[Recipients] = None
    bcc: Optional[Recipients] = None
    attachments: Optional[List[EmailAttachment]] = None


class QueuedEmailStatus(BaseModel):
    """Snapshot of one email waiting for retry."""

    to: Recipients
    subject: str
    attempts: int = Field(..., ge=0)
    last_attempt: datetime


class EmailQueueStatus(BaseModel):
    """Snapshot of the email retry queue."""

    queue_length: int
    queued_emails: List[QueuedEmailStatus]
