"""Email diagnostics endpoints."""

from datetime import datetime, timezone
from typing import List, Optional, Union

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from eviction_crm.api.deps import AdminAuth, Ops
from eviction_crm.models.schemas.email import EmailPayload, EmailQueueStatus
from eviction_crm.observability.logging import get_logger
from eviction_crm.services.email.service import EmailService
from eviction_crm.services.email.templates import EmailTemplateRenderer

logger = get_logger(__name__)

router = APIRouter()

DEFAULT_TEST_SUBJECT = "Test Email from Proactive Eviction CRM"


# Request/response schemas
class EmailTestRequest(BaseModel):
    """Request schema for sending a test email."""

    to: Optional[Union[str, List[str]]] = None
    subject: Optional[str] = None
    html: Optional[str] = None


class EmailTestResponse(BaseModel):
    """Response schema for a delivered test email."""

    success: bool
    message: str
    message_id: Optional[str] = None


@router.post(
    "/test",
    response_model=EmailTestResponse,
    summary="Send a test email",
    description="Send one email through the configured transport to verify the email settings.",
)
async def send_test_email(request: EmailTestRequest, ops: Ops, auth: AdminAuth):
    payload = EmailPayload(
        to=request.to or "",
        subject=request.subject or DEFAULT_TEST_SUBJECT,
        html=request.html or EmailTemplateRenderer().render_test_email(datetime.now(timezone.utc)),
    )
    problem = EmailService.validate_payload(payload)
    if problem is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "VALIDATION_ERROR", "message": problem}},
        )

    result = await ops.email_service.send_email(payload)

    if not result.success:
        logger.error(f"Error sending test email: {result.error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": {
                    "code": "EMAIL_SEND_FAILED",
                    "message": str(result.error) if result.error else "Failed to send test email",
                }
            },
        )

    logger.info(f"Test email sent successfully to {request.to}")
    return EmailTestResponse(
        success=True,
        message="Test email sent successfully",
        message_id=result.message_id,
    )


@router.get(
    "/queue",
    response_model=EmailQueueStatus,
    summary="Email retry queue",
)
async def get_email_queue(ops: Ops, auth: AdminAuth):
    """Snapshot of emails waiting for another delivery attempt."""
    return ops.email_service.get_queue_status()


@router.post("/reset-transport", summary="Reset the email transport")
async def reset_email_transport(ops: Ops, auth: AdminAuth):
    """Drop the cached transport so the next send reconnects with current settings."""
    ops.email_service.reset_transporter()
    return {"success": True, "message": "Email transport reset"}
