"""Deployment tracking endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from eviction_crm.api.deps import AdminAuth, Ops
from eviction_crm.core.exceptions import JsonMap
from eviction_crm.models.schemas.deployment import (
    DeploymentEvent,
    DeploymentEventType,
    DeploymentInfo,
    DeploymentStatusResponse,
)
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

NO_DEPLOYMENT = {"code": "NO_ACTIVE_DEPLOYMENT", "message": "No deployment is in progress"}


# Request/response schemas
class DeploymentEventRequest(BaseModel):
    """Request schema for appending a deployment event."""

    type: DeploymentEventType
    message: str = Field(..., min_length=1, max_length=1000)
    data: Optional[JsonMap] = None


class CompleteDeploymentRequest(BaseModel):
    """Request schema for finishing the current deployment."""

    success: bool
    message: Optional[str] = Field(None, max_length=1000)


class CompleteDeploymentResponse(BaseModel):
    """Response schema for the complete endpoint."""

    success: bool
    deployment: DeploymentInfo


class RollbackRequest(BaseModel):
    """Request schema for rolling back a failed deployment."""

    reason: str = Field("Manual rollback triggered by admin", min_length=1, max_length=1000)


class RollbackResponse(BaseModel):
    """Response schema for the rollback endpoint."""

    success: bool
    message: str


@router.get(
    "/status",
    response_model=DeploymentStatusResponse,
    summary="Deployment status",
    description="Current deployment (if any) and the most recent finished deployments, newest first.",
)
async def get_deployment_status(ops: Ops, auth: AdminAuth):
    monitor = ops.deployment_monitor
    return DeploymentStatusResponse(
        current=monitor.get_current_deployment(),
        history=monitor.get_deployment_history(),
    )


@router.post(
    "/events",
    response_model=DeploymentEvent,
    status_code=status.HTTP_201_CREATED,
    summary="Record a deployment event",
)
async def add_deployment_event(request: DeploymentEventRequest, ops: Ops, auth: AdminAuth):
    """Append an event to the current deployment. 409 if there is none."""
    event = ops.deployment_monitor.add_event(request.type, request.message, request.data)
    if event is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"error": NO_DEPLOYMENT})
    return event


@router.post(
    "/complete",
    response_model=CompleteDeploymentResponse,
    summary="Finish the current deployment",
)
async def complete_deployment(request: CompleteDeploymentRequest, ops: Ops, auth: AdminAuth):
    """Mark the current deployment completed or failed. 409 if nothing is in progress."""
    deployment = await ops.deployment_monitor.complete_deployment(request.success, request.message)
    if deployment is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"error": NO_DEPLOYMENT})
    return CompleteDeploymentResponse(success=True, deployment=deployment)


@router.post(
    "/rollback",
    response_model=RollbackResponse,
    summary="Roll back a failed deployment",
)
async def rollback_deployment(ops: Ops, auth: AdminAuth, request: Optional[RollbackRequest] = None):
    """
    Roll back the current deployment.

    Only a failed deployment can be rolled back; anything else is a 400.
    """
    request = request or RollbackRequest()
    if not await ops.deployment_monitor.rollback_deployment(request.reason):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": "ROLLBACK_NOT_PERMITTED",
                    "message": "Failed to roll back deployment. No failed deployment exists "
                    "or rollback already in progress.",
                }
            },
        )
    return RollbackResponse(success=True, message="Deployment rollback initiated successfully")
