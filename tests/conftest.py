"""Shared fixtures: a controllable clock and a throwaway local store."""

import diskcache
import pytest

from focus_logger.buffer import BufferStore, LocalState
from focus_logger.models import LogEntry


class FakeClock:
    """Epoch-seconds clock advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_entry(url: str = "http://a.com/", duration: int = 10, **overrides) -> LogEntry:
    fields = {
        "url": url,
        "domain": "a.com",
        "title": "A",
        "description": "",
        "start_time": 1_700_000_000_000,
        "end_time": 1_700_000_000_000 + duration * 1000,
        "duration": duration,
        "timestamp": "2023-11-14T22:13:20.000Z",
    }
    fields.update(overrides)
    return LogEntry(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_path):
    c = diskcache.Cache(directory=str(tmp_path / "store"))
    yield c
    c.close()


@pytest.fixture
def state(cache):
    return LocalState(cache)


@pytest.fixture
def buffer(cache, clock):
    return BufferStore(cache, storage_quota_mb=4, purge_percentage=0.1, clock=clock)
