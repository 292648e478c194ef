"""Recent application log endpoint."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from eviction_crm.api.deps import AdminAuth
from eviction_crm.observability.logging import LogLevel, get_recent_logs

router = APIRouter()


class LogsResponse(BaseModel):
    """Response schema for the logs endpoint."""

    logs: List[Dict[str, Any]]


@router.get(
    "",
    response_model=LogsResponse,
    summary="Recent log entries",
    description="Return the most recent entries from the in-memory log buffer, oldest first.",
)
async def get_logs(
    auth: AdminAuth,
    count: int = Query(100, ge=1, le=1000, description="Max entries to return"),
    level: Optional[LogLevel] = Query(None, description="Only entries at this level"),
):
    """Read the log ring buffer without modifying it."""
    entries = get_recent_logs(count, level)
    return LogsResponse(logs=[entry.to_dict() for entry in entries])
