"""Health check endpoints."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from eviction_crm.api.deps import Ops
from eviction_crm.core.config import settings
from eviction_crm.models.database import probe_db
from eviction_crm.observability.logging import get_logger
from eviction_crm.observability.metrics import metrics

logger = get_logger(__name__)

router = APIRouter()

_started_at = time.monotonic()


@router.get("/health")
async def health_check():
    """
    Liveness probe endpoint.

    Returns basic status - use this for container liveness checks.
    """
    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(ops: Ops):
    """
    Readiness probe endpoint.

    Checks the database and the email retry queue. A long queue marks the
    service degraded; an unreachable database returns 503.
    """
    services = {}

    try:
        response_ms = await probe_db()
        services["database"] = {"status": "healthy", "response_time_ms": round(response_ms, 1)}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        services["database"] = {"status": "unhealthy", "response_time_ms": None}

    queue_size = ops.email_service.queue_length
    email_status = "degraded" if queue_size > settings.EMAIL_QUEUE_DEGRADED_THRESHOLD else "healthy"
    services["email"] = {"status": email_status, "queue_size": queue_size}

    if services["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif email_status != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    result = {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _started_at),
        "services": services,
    }

    if overall == "unhealthy":
        return JSONResponse(content=result, status_code=503)
    return result


@router.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Returns all metrics in Prometheus text format.
    """
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    content = metrics.get_metrics()
    return Response(content=content, media_type="text/plain; charset=utf-8")
