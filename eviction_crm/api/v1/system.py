"""Application init and system diagnostics endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from eviction_crm.api.deps import Ops, OptionalAuth
from eviction_crm.core.auth import ensure_admin
from eviction_crm.core.config import settings
from eviction_crm.core.exceptions import ErrorCategory, ErrorSeverity, create_app_error
from eviction_crm.models.database import probe_db
from eviction_crm.models.schemas.email import EmailPayload
from eviction_crm.observability.logging import get_logger, log_event
from eviction_crm.services.email.templates import EmailTemplateRenderer
from eviction_crm.services.email.transport import SmtpConfig

logger = get_logger(__name__)

router = APIRouter()

TEST_ERROR_CATEGORIES: Dict[str, ErrorCategory] = {
    "generic": ErrorCategory.UNKNOWN,
    "database": ErrorCategory.DATABASE,
    "email": ErrorCategory.EMAIL,
    "deployment": ErrorCategory.DEPLOYMENT,
    "environment": ErrorCategory.ENVIRONMENT,
}


# Request/response schemas
class DeploymentSummary(BaseModel):
    """Identity of the deployment started by init."""

    id: str
    version: str
    environment: str


class InitResponse(BaseModel):
    """Response schema for the init endpoint."""

    success: bool
    message: str
    deployment: DeploymentSummary
    environment_valid: bool


class ComponentCheck(BaseModel):
    """Result of checking one component."""

    status: Literal["ok", "error"]
    details: Optional[Dict[str, Any]] = None


class HealthCheckResponse(BaseModel):
    """Response schema for the system health check."""

    status: Literal["healthy", "unhealthy"]
    timestamp: datetime
    results: Dict[str, ComponentCheck]


class ErrorHandlingTestRequest(BaseModel):
    """Request schema for exercising the error handler."""

    error_type: Literal["generic", "database", "email", "deployment", "environment"] = "generic"
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    should_recover: bool = Field(False, description="Mark the test error recoverable")
    should_notify: bool = Field(False, description="Email the error details to recipient_email")
    recipient_email: Optional[str] = None


class ErrorHandlingTestResponse(BaseModel):
    """Response schema for the error handling test."""

    success: bool
    error: Dict[str, Any]
    recovered: bool
    notified: bool = False


@router.post(
    "/init",
    response_model=InitResponse,
    summary="Initialize the application",
    description="Validate the environment and start tracking the running version as a deployment.",
)
async def initialize(ops: Ops, auth: OptionalAuth, startup: bool = False):
    """
    Initialize the application.

    ``startup=true`` is used by the process start hook and skips the admin check.
    Outside development an invalid environment aborts with 500.
    """
    if not startup:
        ensure_admin(auth)

    try:
        validation = ops.env_validator.validate_environment()
        if not validation.valid:
            log_event(
                logger,
                logging.ERROR,
                "Environment validation failed during initialization",
                errors=[e.message for e in validation.errors],
            )
            if settings.APP_ENV != "development":
                return JSONResponse(
                    status_code=500,
                    content={"success": False, "errors": [e.message for e in validation.errors]},
                )

        deployment = await ops.deployment_monitor.init_deployment(
            version=settings.APP_VERSION,
            environment=settings.APP_ENV,
            notify_admins=not startup and settings.is_production,
        )
    except Exception as e:
        app_error = create_app_error(
            "Failed to initialize application",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.DEPLOYMENT,
            cause=e,
        )
        await ops.error_handler.handle_error(app_error)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return InitResponse(
        success=True,
        message="Application initialized successfully",
        deployment=DeploymentSummary(
            id=deployment.id,
            version=deployment.version,
            environment=deployment.environment,
        ),
        environment_valid=validation.valid,
    )


@router.get(
    "/system/health-check",
    response_model=HealthCheckResponse,
    summary="Component health check",
    description="Check environment, database, email and deployment state. "
    "With public=true the check runs without admin credentials and skips email.",
)
async def system_health_check(ops: Ops, auth: OptionalAuth, public: bool = False):
    """Run diagnostics over every operational component."""
    if not public:
        ensure_admin(auth)

    results: Dict[str, ComponentCheck] = {}

    validation = ops.env_validator.validate_environment()
    results["environment"] = ComponentCheck(
        status="ok" if validation.valid else "error",
        details=None if validation.valid else {"error_count": len(validation.errors)},
    )

    try:
        response_ms = await probe_db()
        results["database"] = ComponentCheck(
            status="ok", details={"response_time_ms": round(response_ms, 1)}
        )
    except Exception as e:
        db_error = create_app_error(
            "Database connection failed during health check",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.DATABASE,
            cause=e,
            recoverable=False,
        )
        await ops.error_handler.handle_error(db_error)
        results["database"] = ComponentCheck(status="error", details={"message": str(e)})

    if not public:
        config = SmtpConfig.from_env(ops.env_validator)
        queue_size = ops.email_service.queue_length
        if config.is_complete:
            results["email"] = ComponentCheck(status="ok", details={"queue_size": queue_size})
        else:
            results["email"] = ComponentCheck(
                status="error",
                details={"message": "Incomplete email configuration", "queue_size": queue_size},
            )

    deployment = ops.deployment_monitor.get_current_deployment()
    results["deployment"] = ComponentCheck(
        status="ok",
        details=(
            {"id": deployment.id, "version": deployment.version, "status": deployment.status.value}
            if deployment
            else {"message": "No active deployment"}
        ),
    )

    overall = "unhealthy" if any(r.status == "error" for r in results.values()) else "healthy"
    log_event(
        logger,
        logging.INFO,
        "Health check completed",
        results={name: check.model_dump() for name, check in results.items()},
    )

    return HealthCheckResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        results=results,
    )


@router.post(
    "/system/test-error-handling",
    response_model=ErrorHandlingTestResponse,
    summary="Exercise the error handler",
    description="Build a test AppError of the requested category and severity, handle it, "
    "and optionally email its details.",
)
async def run_error_handling_test(request: ErrorHandlingTestRequest, ops: Ops, auth: OptionalAuth):
    """Create and handle a test error, returning its final state."""
    ensure_admin(auth)

    app_error = create_app_error(
        f"Test {request.error_type} error",
        severity=request.severity,
        category=TEST_ERROR_CATEGORIES[request.error_type],
        recoverable=request.should_recover,
        context={"test": True, "source": "test-error-handling"},
    )
    recovered = await ops.error_handler.handle_error(app_error)

    notified = False
    if request.should_notify and request.recipient_email:
        html = EmailTemplateRenderer().render_error_notification(app_error)
        result = await ops.email_service.send_email(
            EmailPayload(
                to=request.recipient_email,
                subject=f"Test Error Notification: {app_error.category.value} ({app_error.severity.value})",
                html=html,
            )
        )
        notified = result.success

    return ErrorHandlingTestResponse(
        success=True,
        error=app_error.to_dict(),
        recovered=recovered,
        notified=notified,
    )

