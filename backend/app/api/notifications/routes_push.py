"""Push notification relay: any signed-in caller may push to a set of users."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import cors_preflight, get_current_caller
from app.domain.common.errors import ValidationError
from app.infra.db.repositories.profile_repo import ProfileRepository
from app.infra.db.session import get_db
from app.infra.push.sender import PushGateway, get_push_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


class PushRequest(BaseModel):
    """Send push request."""
    user_ids: Optional[list[str]] = None
    title: Optional[str] = None
    message: Optional[str] = None
    data: Optional[dict[str, Any]] = None


@router.options("/send-fcm-notification")
async def send_push_preflight():
    return cors_preflight()


@router.post("/send-fcm-notification")
async def send_push(
    request: PushRequest,
    gateway: PushGateway = Depends(get_push_gateway),
    caller_id: str = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Send one message per registered device token of ``user_ids``.
    Users without a token are skipped; a failed send is reported per user and
    does not stop the others.
    """
    if not request.user_ids or not request.title or not request.message:
        raise ValidationError("Missing user_ids, title, or message")

    tokens = await ProfileRepository(db).list_push_tokens(request.user_ids)
    results: list[dict[str, Any]] = []
    for user_id, token in tokens:
        try:
            result = await gateway.send(token, request.title, request.message, request.data)
        except Exception as e:
            logger.warning("Push to %s failed: %s", user_id, e)
            result = {"success": False, "error": str(e)}
        results.append({"userId": user_id, **result})

    logger.info("Push relay by %s: %d/%d targets with tokens", caller_id, len(results), len(request.user_ids))
    return {"success": True, "sent": len(results), "results": results}
