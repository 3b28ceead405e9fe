"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config loads predictable values,
and provides common fixtures like temp stores and a controllable clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("TASK_STORE", "memory")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, hour: int, minute: int) -> None:
        self.current = self.current.replace(hour=hour, minute=minute, second=0, microsecond=0)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingScheduler:
    """Stands in for schedule_later: records callbacks, runs them on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, object]] = []

    def __call__(self, delay, callback) -> None:
        self.calls.append((delay, callback))

    def run_all(self) -> None:
        calls, self.calls = self.calls, []
        for _, callback in calls:
            callback()


@pytest.fixture
def clock():
    """A FakeClock set to 2024-05-01 09:00 UTC."""
    return FakeClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_tasks.db")


@pytest.fixture
def task_db(tmp_db_path):
    """Return a TaskDB instance backed by a temp file."""
    from src.data.db import TaskDB
    return TaskDB(db_path=tmp_db_path)


@pytest.fixture
def memory_store():
    from src.data.db import MemoryTaskDB
    return MemoryTaskDB()


@pytest.fixture
def subscriber_db(tmp_path):
    """Return a SubscriberDB instance backed by a temp file."""
    from src.data.db import SubscriberDB
    return SubscriberDB(db_path=str(tmp_path / "test_subscribers.db"))
