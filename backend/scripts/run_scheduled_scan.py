#!/usr/bin/env python3
"""Run one scheduled dispatch pass in-process (for cron hosts). Exit 0 on success, 1 on failure."""
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure backend app is on path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from app.domain.common.types import isoformat
from app.infra.db.session import dispose_engine, get_session_factory
from app.services.scheduled_dispatch import run_scheduled_scan

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("run_scheduled_scan")


async def _run() -> int:
    try:
        async with get_session_factory()() as session:
            now, result = await run_scheduled_scan(session)
    except Exception as e:
        logger.error("Scheduled scan failed: %s", e, exc_info=True)
        print(json.dumps({"success": False, "error": str(e)}))
        return 1
    finally:
        await dispose_engine()
    print(json.dumps({"success": True, "now": isoformat(now), "result": result.model_dump()}))
    return 0


def main() -> int:
    return asyncio.run(_run())


if __name__ == "__main__":
    sys.exit(main())
