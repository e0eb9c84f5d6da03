"""Readiness checks behind /health and scripts/check_readiness.py.

Each check returns ``(passed, detail)``. Only the config and database checks
gate readiness; the scheduler and push checks are reported so an operator can
see a half-configured deployment before the first scan or push goes out.
"""
import logging

from sqlalchemy import text

from app.settings import get_settings

logger = logging.getLogger(__name__)

CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]

REQUIRED_CHECKS = ("config", "database")


def check_config() -> CheckResult:
    try:
        current = get_settings()
    except Exception as e:
        return False, str(e)
    if not current.database_url:
        return False, "database_url not configured"
    if not current.jwt_secret:
        return False, "jwt_secret not configured"
    return True, "ok"


def check_scheduler() -> CheckResult:
    """POST /scheduled-orders accepts the cron secret or the service key; with neither, nothing can trigger a scan."""
    current = get_settings()
    if current.scheduled_order_cron_secret or current.service_role_key:
        return True, "ok"
    return False, "no scheduler secret configured"


def check_push() -> CheckResult:
    current = get_settings()
    if not current.firebase_project_id:
        return True, "skipped (not configured)"
    if not current.firebase_service_account_json:
        return False, "firebase_service_account_json not configured"
    return True, "ok"


async def check_database() -> CheckResult:
    from app.infra.db.session import get_engine

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database readiness check failed: %s", e)
        return False, str(e)
    return True, "ok"


async def run_all_checks_async() -> ChecksDict:
    checks: ChecksDict = {"config": check_config()}
    checks["database"] = await check_database()
    checks["scheduler"] = check_scheduler()
    checks["push"] = check_push()
    return checks


def is_ready(checks: ChecksDict) -> tuple[bool, dict[str, str]]:
    """Ready when every required check that ran passed. Also returns name -> detail for display."""
    summary = {name: detail for name, (_, detail) in checks.items()}
    failed = [name for name in REQUIRED_CHECKS if name in checks and not checks[name][0]]
    return not failed, summary
