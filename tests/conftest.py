"""Shared fixtures: temporary SQLite database, fake clock, mocked collaborators."""

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from coach_scheduling.core.config import Settings
from coach_scheduling.core.db import init_db
from coach_scheduling.models import Appointment, DailySchedule, Requester, Slot, SlotStatus  # noqa: F401
from coach_scheduling.services.appointment_store import AppointmentStore
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.meetings.simple import SimpleMeetProvider
from coach_scheduling.services.notifier import Notifier
from coach_scheduling.services.schedule_store import ScheduleStore
from coach_scheduling.services.scheduling_core import build_core


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Two days before the 2025-03-01 sessions used throughout the tests."""
    return FakeClock(datetime(2025, 2, 27, 9, 0))


@pytest.fixture
def settings():
    return Settings(
        store_max_attempts=8,
        store_retry_backoff_seconds=0.01,
        meeting_provider="simple",
        meet_base_url="https://meet.test",
    )


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduling.db'}", poolclass=NullPool)
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def schedule_store(session_maker, settings):
    return ScheduleStore(
        session_maker,
        max_attempts=settings.store_max_attempts,
        retry_backoff_seconds=settings.store_retry_backoff_seconds,
    )


@pytest.fixture
def appointment_store(session_maker):
    return AppointmentStore(session_maker)


@pytest.fixture
def notifier():
    mock = AsyncMock(spec=Notifier)
    mock.send.return_value = True
    return mock


@pytest.fixture
def meetings():
    return MeetingService(SimpleMeetProvider("https://meet.test"))


@pytest.fixture
def core(settings, session_maker, notifier, meetings, clock):
    return build_core(settings, session_maker, notifier=notifier, meetings=meetings, clock=clock)


@pytest.fixture
def alice():
    return Requester(user_id="user-a", display_name="Alice", contact_address="alice@example.com")


@pytest.fixture
def bob():
    return Requester(user_id="user-b", display_name="Bob", contact_address="bob@example.com")


async def open_slots(store: ScheduleStore, day: date, *times: str, status: SlotStatus = SlotStatus.AVAILABLE):
    def apply(slots):
        for t in times:
            slots[t] = Slot(time=t, status=status)
        return slots

    return await store.transact(day, apply)
