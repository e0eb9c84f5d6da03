#!/usr/bin/env python3
"""Check a dispatch deployment before enabling the scheduler cron.

Prints one line per check. Exits 0 when config and database pass, 1 otherwise.
Run from backend/: ``python scripts/check_readiness.py``.
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.infra.db.session import dispose_engine  # noqa: E402
from app.readiness import REQUIRED_CHECKS, is_ready, run_all_checks_async  # noqa: E402


async def collect():
    try:
        return await run_all_checks_async()
    finally:
        await dispose_engine()


def main() -> int:
    checks = asyncio.run(collect())
    ready, summary = is_ready(checks)
    width = max(len(name) for name in summary)
    for name, detail in summary.items():
        mark = "pass" if checks[name][0] else "FAIL"
        gate = "required" if name in REQUIRED_CHECKS else "optional"
        print(f"{name.ljust(width)}  {mark}  [{gate}]  {detail}")
    print("ready" if ready else "not ready")
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
