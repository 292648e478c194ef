"""Deployment tracking schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from eviction_crm.core.exceptions import JsonMap


class DeploymentStatus(str, Enum):
    """Lifecycle states of a deployment."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class DeploymentEventType(str, Enum):
    """Kinds of entries in a deployment's event log."""

    STARTED = "started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


# Event types that count towards a deployment's error_count
ERROR_EVENT_TYPES = frozenset({DeploymentEventType.STEP_FAILED, DeploymentEventType.FAILED})


class DeploymentEvent(BaseModel):
    """A timestamped entry in a deployment's event log."""

    type: DeploymentEventType
    timestamp: datetime
    message: str
    data: Optional[JsonMap] = None


class DeploymentInfo(BaseModel):
    """One versioned release attempt."""

    id: str = Field(..., description="deploy-<epoch ms>-<random>")
    version: str
    environment: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: DeploymentStatus = DeploymentStatus.PENDING
    events: List[DeploymentEvent] = Field(default_factory=list)
    error_count: int = Field(0, ge=0)

    @property
    def duration_seconds(self) -> Optional[int]:
        """Whole seconds between start and end, if finished."""
        if self.end_time is None:
            return None
        return round((self.end_time - self.start_time).total_seconds())


class DeploymentStatusResponse(BaseModel):
    """Current deployment plus recent history."""

    current: Optional[DeploymentInfo]
    history: List[DeploymentInfo]
