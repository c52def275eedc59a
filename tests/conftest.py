import pytest

from feedcache.core import cache
from feedcache.core.cache import CacheEngine


class FakeTimer:
    """Stands in for threading.Timer; fires only when the test says so."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval  = interval
        self.function  = function
        self.args      = args or ()
        self.kwargs    = kwargs or {}
        self.daemon    = False
        self.started   = False
        self.cancelled = False
        self.fired     = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.function(*self.args, **self.kwargs)


class FakeTimers:
    def __init__(self):
        self.created: list[FakeTimer] = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        self.created.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    def run_pending(self) -> int:
        due = self.pending()
        for t in due:
            t.fire()
        return len(due)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def storage(timers):
    engine = CacheEngine(ttl_s=60, timer_factory=timers)
    yield engine
    engine.close()


@pytest.fixture
def shared_storage(storage, monkeypatch):
    """Installs `storage` as the process-wide engine used by routes and collectors."""
    monkeypatch.setattr(cache, "_storage", storage)
    return storage
