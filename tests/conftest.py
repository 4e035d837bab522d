"""Shared fixtures for the reservation test suite."""

import os

# Must be set before the app modules create their module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app import models  # noqa: F401
from app.database import Base, build_engine
from app.domain.reservations.service import ReservationService
from app.queue import PendingJobs
from app.shared.time_utils import utcnow


class FakeClock:
    """Steppable clock returning naive UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event, reservation):
        self.events.append((event, reservation.id))


class RecordingScheduler:
    def __init__(self):
        self.scheduled = []
        self.cancelled = []

    def schedule(self, reservation):
        self.scheduled.append((reservation.id, reservation.expires_at))

    def cancel(self, reservation_id):
        self.cancelled.append(reservation_id)


class RecordingJobs(PendingJobs):
    """PendingJobs that records flushes instead of talking to Redis."""

    def __init__(self):
        super().__init__()
        self.flushed_jobs = []
        self.flushed_aborts = []

    async def flush(self, pool=None) -> int:
        count = len(self.jobs)
        self.flushed_jobs.extend(self.jobs)
        self.flushed_aborts.extend(self.aborts)
        self.jobs, self.aborts = [], []
        return count


class FakeJob:
    def __init__(self, job_id):
        self.job_id = job_id


class FakePool:
    """Minimal stand-in for an ArqRedis pool."""

    def __init__(self):
        self.enqueued = []
        self.closed = False

    async def enqueue_job(self, function, *args, **kwargs):
        job_id = kwargs.get("_job_id") or f"job-{len(self.enqueued)}"
        if any(existing[2].get("_job_id") == job_id for existing in self.enqueued):
            return None
        self.enqueued.append((function, args, kwargs))
        return FakeJob(job_id)

    async def close(self):
        self.closed = True


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(utcnow().replace(microsecond=0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def service(db, notifier, scheduler, clock):
    return ReservationService(db, notifier=notifier, expiry_scheduler=scheduler, clock=clock)


@pytest.fixture
def slot(clock):
    """A bookable slot one day after the fake clock's start."""
    return clock.now.replace(minute=0, second=0) + timedelta(days=1)
