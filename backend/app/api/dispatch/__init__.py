"""Scheduled dispatch API."""
from fastapi import APIRouter

from app.api.dispatch import routes_scheduled

router = APIRouter()

router.include_router(routes_scheduled.router, tags=["dispatch"])
