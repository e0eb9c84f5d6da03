"""Notifications API."""
from fastapi import APIRouter

from app.api.notifications import routes_push

router = APIRouter()

router.include_router(routes_push.router, tags=["notifications"])
