"""Dispatch control plane: admin actions, scheduled-order scan, push relay, health."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.admin import router as admin_router
from app.api.dispatch import router as dispatch_router
from app.api.notifications import router as notifications_router
from app.domain.admin.throttle import RequestThrottle
from app.domain.common.errors import DomainError, MethodNotAllowedError
from app.infra.db.base import Base
from app.infra.db import models  # noqa: F401  registers tables on Base.metadata
from app.infra.db.session import dispose_engine, get_engine
from app.settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on boot (migrations own changes); release the pool on shutdown."""
    try:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        # Database might not be ready yet; requests will surface store errors
        logger.warning("Could not connect to database during startup: %s", e)

    yield

    await dispose_engine()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and its response status and duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        logger.info("[REQUEST] %s %s", request.method, request.url.path)
        if request.headers:
            # Don't log authorization or secret headers fully
            headers = dict(request.headers)
            for name in ("authorization", "x-scheduler-secret", "apikey"):
                if name in headers:
                    headers[name] = f"{headers[name][:12]}..."
            logger.debug("   Headers: %s", headers)

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        logger.info(
            "[RESPONSE] %s %s - %s (%.3fs)",
            request.method, request.url.path, response.status_code, elapsed,
        )
        return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        """Map a domain error to its HTTP status."""
        if exc.status_code >= 500:
            logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            not_allowed = MethodNotAllowedError()
            return _error(not_allowed.status_code, not_allowed.message)
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies answer 400 like any other missing field."""
        errors = exc.errors()
        logger.warning("[VALIDATION ERROR] %s %s: %s", request.method, request.url.path, errors)
        if not errors:
            return _error(400, "Invalid request body")
        first = errors[0]
        if first.get("type") == "json_invalid":
            return _error(400, "Invalid JSON body")
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        return _error(400, f"Invalid '{field}': {first.get('msg')}")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    # Counters are per application instance
    app.state.throttle = RequestThrottle(
        max_requests=settings.admin_rate_limit_max,
        window_seconds=settings.admin_rate_limit_window_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    # Registered after CORS so preflight responses are logged too
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check: 200 when config and database are usable, 503 otherwise."""
        from app.readiness import is_ready, run_all_checks_async
        ready, summary = is_ready(await run_all_checks_async())
        body = {"status": "ok" if ready else "unavailable", "version": settings.app_version, "checks": summary}
        if ready:
            return body
        return JSONResponse(status_code=503, content=body)

    app.include_router(admin_router)
    app.include_router(dispatch_router)
    app.include_router(notifications_router)
    return app


app = create_app()
