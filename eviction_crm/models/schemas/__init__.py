"""Pydantic schemas for request/response validation."""

from eviction_crm.models.schemas.deployment import (
    DeploymentEvent,
    DeploymentEventType,
    DeploymentInfo,
    DeploymentStatus,
    DeploymentStatusResponse,
)
from eviction_crm.models.schemas.email import (
    EmailAttachment,
    EmailPayload,
    EmailQueueStatus,
    QueuedEmailStatus,
)

__all__ = [
    "DeploymentEvent",
    "DeploymentEventType",
    "DeploymentInfo",
    "DeploymentStatus",
    "DeploymentStatusResponse",
    "EmailAttachment",
    "EmailPayload",
    "EmailQueueStatus",
    "QueuedEmailStatus",
]
