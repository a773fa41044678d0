import os
from datetime import datetime, timedelta, timezone

import pytest

# Set default env vars for tests before any app imports
os.environ.setdefault("SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("SIMULATION_DURATION_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from conversion_tracker.core.tracker import ConversionTracker  # noqa: E402


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def tick(self, ms=0, seconds=0):
        self.now = self.now + timedelta(milliseconds=ms, seconds=seconds)
        return self.now


class FakeTimer:
    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args=args, kwargs=kwargs)
        self.timers.append(timer)
        return timer


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def tracker(clock, timers):
    counter = iter(range(1, 10_000))
    instance = ConversionTracker(
        retention_window=3600,
        clock=clock,
        id_factory=lambda: f"conv-{next(counter)}",
        timer_factory=timers,
    )
    yield instance
    instance.shutdown()
