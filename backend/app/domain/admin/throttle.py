"""Per-caller fixed-window throttle for admin actions.

In-process and best-effort: counters live in this process only and are lost on
restart. One instance is built per application and handed to the routes.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.domain.common.errors import RateLimitError
from app.domain.common.types import Clock, utcnow


@dataclass
class ThrottleWindow:
    count: int
    reset_at: datetime


class RequestThrottle:
    """Allow at most ``max_requests`` calls per caller in each ``window``."""

    def __init__(self, max_requests: int = 60, window_seconds: float = 60.0, clock: Optional[Clock] = None):
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock or utcnow
        self.counts: dict[str, ThrottleWindow] = {}
        self._next_sweep: Optional[datetime] = None

    def hit(self, caller_id: str) -> int:
        """Count one call for ``caller_id``; raise RateLimitError past the limit.

        Rejected calls still count toward the current window.
        """
        now = self.clock()
        if self._next_sweep is None or now >= self._next_sweep:
            self._sweep(now)
        entry = self.counts.get(caller_id)
        if entry is None or now > entry.reset_at:
            entry = ThrottleWindow(count=0, reset_at=now + self.window)
            self.counts[caller_id] = entry
        entry.count += 1
        if entry.count > self.max_requests:
            raise RateLimitError()
        return entry.count

    def _sweep(self, now: datetime) -> None:
        """Drop windows that have expired; runs at most once per window length."""
        for caller_id in [k for k, entry in self.counts.items() if now > entry.reset_at]:
            del self.counts[caller_id]
        self._next_sweep = now + self.window

    def reset(self) -> None:
        self.counts.clear()
        self._next_sweep = None
