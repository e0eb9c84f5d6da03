"""Tests for the per-caller admin throttle."""
from datetime import timedelta

import pytest

from app.domain.admin.throttle import RequestThrottle
from app.domain.common.errors import RateLimitError

from conftest import NOW


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


def test_61st_call_in_window_is_rejected_then_window_resets():
    clock = FakeClock()
    throttle = RequestThrottle(max_requests=60, window_seconds=60, clock=clock)

    for i in range(60):
        assert throttle.hit("admin-1") == i + 1
    with pytest.raises(RateLimitError) as exc:
        throttle.hit("admin-1")
    assert exc.value.status_code == 429
    assert exc.value.message == "Rate limit exceeded. Please wait a moment."

    clock.now = NOW + timedelta(seconds=61)
    assert throttle.hit("admin-1") == 1


def test_rejected_calls_still_count():
    clock = FakeClock()
    throttle = RequestThrottle(max_requests=2, window_seconds=60, clock=clock)
    throttle.hit("a")
    throttle.hit("a")
    for _ in range(3):
        with pytest.raises(RateLimitError):
            throttle.hit("a")
    assert throttle.counts["a"].count == 5


def test_callers_are_counted_separately():
    throttle = RequestThrottle(max_requests=1, window_seconds=60, clock=FakeClock())
    throttle.hit("a")
    assert throttle.hit("b") == 1
    with pytest.raises(RateLimitError):
        throttle.hit("a")


def test_window_boundary_is_inclusive():
    clock = FakeClock()
    throttle = RequestThrottle(max_requests=1, window_seconds=60, clock=clock)
    throttle.hit("a")
    # Exactly at reset time the old window still applies
    clock.now = NOW + timedelta(seconds=60)
    with pytest.raises(RateLimitError):
        throttle.hit("a")


def test_reset_clears_all_counters():
    throttle = RequestThrottle(max_requests=1, window_seconds=60, clock=FakeClock())
    throttle.hit("a")
    throttle.reset()
    assert throttle.counts == {}
    assert throttle.hit("a") == 1


def test_expired_windows_are_swept():
    clock = FakeClock()
    throttle = RequestThrottle(max_requests=5, window_seconds=60, clock=clock)
    throttle.hit("a")
    throttle.hit("b")

    clock.now = NOW + timedelta(seconds=40)
    throttle.hit("c")
    assert set(throttle.counts) == {"a", "b", "c"}

    clock.now = NOW + timedelta(seconds=91)
    throttle.hit("d")
    assert set(throttle.counts) == {"c", "d"}
