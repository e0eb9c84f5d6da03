"""Single admin endpoint: POST /admin-actions {action, ...fields}."""
import logging

from fastapi import APIRouter, Depends, Request

from app.api.admin.actions import dispatch
from app.api.deps import AdminContext, cors_preflight, get_admin_context, get_throttle
from app.domain.admin.throttle import RequestThrottle
from app.domain.common.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.options("/admin-actions")
async def admin_actions_preflight():
    return cors_preflight()


@router.post("/admin-actions")
async def admin_actions(
    request: Request,
    ctx: AdminContext = Depends(get_admin_context),
    throttle: RequestThrottle = Depends(get_throttle),
):
    """
    Run one admin action. The caller must hold the admin role; each admin is
    throttled per window before the body is even parsed.
    """
    throttle.hit(ctx.caller_id)
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    action = body.get("action")
    if not action or not isinstance(action, str):
        raise ValidationError("Missing 'action' field")
    logger.info("admin-actions [%s] by %s", action, ctx.caller_id)
    return await dispatch(ctx, action, body)
