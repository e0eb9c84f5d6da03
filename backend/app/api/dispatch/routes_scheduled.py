"""Scheduled order scanner trigger (called by cron with the scheduler secret)."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import cors_preflight, get_clock, require_scheduler_auth
from app.domain.common.types import Clock, isoformat
from app.infra.db.session import get_db
from app.services.scheduled_dispatch import run_scheduled_scan

logger = logging.getLogger(__name__)

router = APIRouter()


@router.options("/process-scheduled-orders")
async def process_scheduled_orders_preflight():
    return cors_preflight()


@router.post("/process-scheduled-orders", dependencies=[Depends(require_scheduler_auth)])
async def process_scheduled_orders(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Run one reminder + release pass and report the counts."""
    try:
        now, result = await run_scheduled_scan(db, clock)
    except Exception as e:
        logger.error("process-scheduled-orders failed: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return {"success": True, "now": isoformat(now), "result": result.model_dump()}
