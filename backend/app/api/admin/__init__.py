"""Admin API routes."""
from fastapi import APIRouter

from app.api.admin import routes_actions, routes_email

router = APIRouter()

router.include_router(routes_actions.router, tags=["admin"])
router.include_router(routes_email.router, tags=["email"])
