"""Outbound admin email."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import cors_preflight, get_admin_id
from app.domain.common.errors import UpstreamStoreError, ValidationError
from app.infra.messaging.email_base import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminEmailRequest(BaseModel):
    to: Optional[str] = None
    subject: Optional[str] = None
    html: Optional[str] = None


@router.options("/send-admin-email")
async def send_admin_email_preflight():
    return cors_preflight()


@router.post("/send-admin-email")
async def send_admin_email(
    request: AdminEmailRequest,
    admin_id: str = Depends(get_admin_id),
    email: EmailService = Depends(get_email_service),
):
    """Send one email on behalf of an admin; without a provider it is only logged."""
    if not request.to or not request.subject:
        raise ValidationError("Missing required fields: to, subject")
    logger.info("send-admin-email by %s to %s", admin_id, request.to)
    try:
        result = await email.send(request.to, request.subject, request.html)
    except Exception as e:
        raise UpstreamStoreError(str(e) or "Email send failed") from e
    return {"success": True, **result}
