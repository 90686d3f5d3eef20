"""
Shared test fixtures.
"""

import datetime as dt

import pytest

from water_tracker.services.intake_store import WaterIntakeStore
from water_tracker.services.storage import InMemoryStorage, SaveFailed


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


class FailingStorage(InMemoryStorage):
    """In-memory storage whose writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False

    def put(self, key: str, data: bytes) -> None:
        if self.fail_writes:
            raise SaveFailed(f"{key}: disk full")
        super().put(key, data)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2024, 5, 15, 12, 0))


@pytest.fixture
def store(storage, clock) -> WaterIntakeStore:
    return WaterIntakeStore(storage, clock=clock)


@pytest.fixture
def failing_storage() -> FailingStorage:
    return FailingStorage()


@pytest.fixture
def log_at(store, clock):
    """Add an entry as if it was logged at `when`; the clock is restored afterwards."""

    def _log(when: dt.datetime, amount: float) -> str:
        restore = clock.now
        clock.now = when
        try:
            return store.add_entry(amount)
        finally:
            clock.now = restore
            store.calculate_today_total()

    return _log
