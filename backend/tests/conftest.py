"""Shared fixtures: a fresh SQLite database per test and fake side-effect collaborators."""

from __future__ import annotations

from datetime import datetime, time

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401  (registers tables on Base.metadata)
from app.core.database import Base
from app.integrations.providers import CalendarSyncResult
from app.models import AvailabilityWindow, MeetingType, Organizer
from app.services.booking_orchestrator import Attendee, BookingOrchestrator
from app.services.conflict_guard import ConflictGuard
from app.services.side_effects import SideEffectRunner
from app.services.timezones import UTC

# Saturday; the following Monday is 2026-01-12 (EST, UTC-5)
NOW = datetime(2026, 1, 10, 12, 0, tzinfo=UTC)

WEEKDAYS_9_TO_5 = [
    {"day_of_week": day, "start_time": time(9), "end_time": time(17)}
    for day in range(5)
]


class FakeNotifier:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.confirmed: list[str] = []
        self.cancelled: list[str] = []

    async def notify_booking_confirmed(self, meeting) -> None:
        if self.failures:
            self.failures -= 1
            raise RuntimeError("mail server unavailable")
        self.confirmed.append(meeting.uid)

    async def notify_booking_cancelled(self, meeting) -> None:
        self.cancelled.append(meeting.uid)


class FakeCalendarSync:
    def __init__(self, always_fail: bool = False):
        self.always_fail = always_fail
        self.created: list[str] = []
        self.cancelled: list[str] = []

    async def sync_event_created(self, meeting) -> CalendarSyncResult:
        if self.always_fail:
            raise RuntimeError("calendar API down")
        self.created.append(meeting.uid)
        return CalendarSyncResult(synced=True, external_reference=meeting.uid)

    async def sync_event_cancelled(self, meeting) -> CalendarSyncResult:
        self.cancelled.append(meeting.uid)
        return CalendarSyncResult(synced=True, external_reference=meeting.uid)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def calendar():
    return FakeCalendarSync()


@pytest.fixture
async def orchestrator(session_factory, notifier, calendar):
    orchestrator = BookingOrchestrator(
        session_factory=session_factory,
        guard=ConflictGuard(timeout_seconds=2.0),
        notifier=notifier,
        calendar_sync=calendar,
        side_effects=SideEffectRunner(max_attempts=2, backoff_seconds=0),
        clock=lambda: NOW,
    )
    yield orchestrator
    await orchestrator.drain()


@pytest.fixture
def attendee():
    return Attendee(name="Jane Smith", email="jane@example.com", phone="+15555550100", timezone="America/New_York")


@pytest.fixture
def seed(session_factory):
    """Create an organizer with weekly windows and one meeting type.

    Returns ``(organizer, meeting_type)``.
    """

    async def _seed(
        *,
        timezone: str = "America/New_York",
        windows=None,
        duration: int = 30,
        buffer_minutes: int = 0,
        advance_booking_days: int = 30,
        min_advance_hours: int = 0,
        **organizer_fields,
    ):
        async with session_factory() as session:
            organizer = Organizer(
                name="Dr. Rivera",
                email="rivera@example.com",
                timezone=timezone,
                buffer_minutes=buffer_minutes,
                advance_booking_days=advance_booking_days,
                min_advance_hours=min_advance_hours,
                **organizer_fields,
            )
            session.add(organizer)
            await session.flush()

            for window in WEEKDAYS_9_TO_5 if windows is None else windows:
                session.add(AvailabilityWindow(organizer_id=organizer.id, **window))

            meeting_type = MeetingType(
                organizer_id=organizer.id,
                name="Intro call",
                duration_minutes=duration,
            )
            session.add(meeting_type)
            await session.commit()
            await session.refresh(organizer)
            await session.refresh(meeting_type)
        return organizer, meeting_type

    return _seed
