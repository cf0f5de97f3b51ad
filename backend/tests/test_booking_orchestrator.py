from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import (
    BookingContention,
    InvalidTransition,
    MeetingNotFound,
    OrganizerNotBookable,
    PersistenceUnavailable,
    SlotNoLongerAvailable,
    SlotViolatesPolicy,
)
from app.models.meeting import CANCELLED, COMPLETED, CONFIRMED, RESCHEDULE_REQUESTED
from app.services.booking_orchestrator import Attendee, BookingOrchestrator
from app.services.conflict_guard import ConflictGuard
from app.services.db_service import DBService
from app.services.side_effects import SideEffectRunner
from app.services.slot_generator import SlotGenerator
from app.services.timezones import UTC
from conftest import NOW, FakeCalendarSync, FakeNotifier


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


# Monday 2026-01-12, 09:00 New York
MONDAY_9AM = utc(2026, 1, 12, 14)


async def meetings_of(session_factory, organizer_id):
    async with session_factory() as session:
        return await DBService(session).list_organizer_meetings(organizer_id)


class BrokenSessionFactory:
    def __call__(self):
        return self

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def __aexit__(self, *exc):
        return False


class TestBook:
    async def test_books_confirmed_meeting(self, orchestrator, seed, attendee, notifier, calendar):
        organizer, meeting_type = await seed()

        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        await orchestrator.drain()

        assert meeting.status == CONFIRMED
        assert meeting.start_utc == MONDAY_9AM
        assert meeting.end_utc == MONDAY_9AM + timedelta(minutes=30)
        assert meeting.attendee_timezone == "America/New_York"
        assert meeting.organizer_timezone == "America/New_York"
        assert notifier.confirmed == [meeting.uid]
        assert calendar.created == [meeting.uid]

        stored = await orchestrator.get_meeting(meeting.uid)
        assert stored.status == CONFIRMED

    async def test_accepts_string_ids(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()

        meeting = await orchestrator.book(str(organizer.id), str(meeting_type.id), MONDAY_9AM, attendee)

        assert meeting.organizer_id == organizer.id

    async def test_insufficient_notice_is_not_persisted(self, orchestrator, seed, attendee, session_factory):
        organizer, meeting_type = await seed(min_advance_hours=72)

        with pytest.raises(SlotViolatesPolicy, match="advance notice"):
            await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        assert await meetings_of(session_factory, organizer.id) == []

    async def test_off_grid_start_rejected(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()

        with pytest.raises(SlotViolatesPolicy):
            await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM + timedelta(minutes=7), attendee)

    async def test_books_slot_listed_with_finer_stride(self, orchestrator, seed, attendee, session_factory):
        organizer, meeting_type = await seed()
        generator = SlotGenerator(session_factory, clock=lambda: NOW)

        slots = await generator.generate_slots(
            organizer.id, 30, (MONDAY_9AM.date(), MONDAY_9AM.date()), interval_minutes=15
        )
        quarter_past = next(s for s in slots if s.start_time == MONDAY_9AM + timedelta(minutes=15))

        meeting = await orchestrator.book(organizer.id, meeting_type.id, quarter_past.start_time, attendee)

        assert meeting.start_utc == quarter_past.start_time
        assert meeting.end_utc == quarter_past.end_time

    async def test_wrong_length_rejected(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()

        with pytest.raises(SlotViolatesPolicy, match="exactly 30"):
            await orchestrator.book(
                organizer.id, meeting_type.id, MONDAY_9AM, attendee,
                end_time=MONDAY_9AM + timedelta(minutes=45),
            )

    async def test_buffer_blocks_adjacent_booking(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed(buffer_minutes=15)
        await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        with pytest.raises(SlotNoLongerAvailable) as exc_info:
            await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM + timedelta(minutes=30), attendee)
        assert exc_info.value.retriable is True

        later = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM + timedelta(minutes=60), attendee)
        assert later.status == CONFIRMED

    async def test_concurrent_bookings_yield_single_winner(self, orchestrator, seed, session_factory):
        organizer, meeting_type = await seed()
        attendees = [Attendee(name=f"Guest {i}", email=f"guest{i}@example.com") for i in range(8)]

        results = await asyncio.gather(
            *(orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, a) for a in attendees),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, (SlotNoLongerAvailable, BookingContention)) for e in losers)

        stored = await meetings_of(session_factory, organizer.id)
        assert [m.status for m in stored] == [CONFIRMED]

    async def test_invalid_attendee_timezone_uses_organizer_zone(self, orchestrator, seed):
        organizer, meeting_type = await seed()

        meeting = await orchestrator.book(
            organizer.id, meeting_type.id, MONDAY_9AM,
            Attendee(name="Sam", email="sam@example.com", timezone="Nowhere/Special"),
        )

        assert meeting.attendee_timezone == "America/New_York"


class TestPreconditions:
    async def test_inactive_organizer(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed(is_active=False)

        with pytest.raises(OrganizerNotBookable):
            await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

    async def test_unknown_organizer(self, orchestrator, attendee):
        with pytest.raises(OrganizerNotBookable):
            await orchestrator.book(uuid.uuid4(), uuid.uuid4(), MONDAY_9AM, attendee)

    async def test_meeting_type_of_other_organizer(self, orchestrator, seed, attendee):
        organizer, _ = await seed()
        _, foreign_type = await seed()

        with pytest.raises(OrganizerNotBookable, match="Meeting type"):
            await orchestrator.book(organizer.id, foreign_type.id, MONDAY_9AM, attendee)

    async def test_calendar_required_but_not_connected(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed(requires_calendar=True)

        with pytest.raises(OrganizerNotBookable, match="calendar"):
            await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

    async def test_database_failure_is_reported(self, attendee):
        orchestrator = BookingOrchestrator(
            session_factory=BrokenSessionFactory(),
            notifier=FakeNotifier(),
            calendar_sync=FakeCalendarSync(),
            clock=lambda: NOW,
        )

        with pytest.raises(PersistenceUnavailable) as exc_info:
            await orchestrator.book(uuid.uuid4(), uuid.uuid4(), MONDAY_9AM, attendee)
        assert exc_info.value.status_code == 503


class TestSideEffects:
    async def test_failures_do_not_reverse_booking(self, seed, session_factory, attendee, caplog):
        caplog.set_level(logging.ERROR)
        orchestrator = BookingOrchestrator(
            session_factory=session_factory,
            guard=ConflictGuard(timeout_seconds=1.0),
            notifier=FakeNotifier(failures=10),
            calendar_sync=FakeCalendarSync(always_fail=True),
            side_effects=SideEffectRunner(max_attempts=2, backoff_seconds=0),
            clock=lambda: NOW,
        )
        organizer, meeting_type = await seed()

        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        await orchestrator.drain()

        stored = await orchestrator.get_meeting(meeting.uid)
        assert stored.status == CONFIRMED
        assert "Calendar out of sync" in caplog.text

    async def test_notification_retried(self, seed, session_factory, attendee):
        notifier = FakeNotifier(failures=1)
        orchestrator = BookingOrchestrator(
            session_factory=session_factory,
            notifier=notifier,
            calendar_sync=FakeCalendarSync(),
            side_effects=SideEffectRunner(max_attempts=2, backoff_seconds=0),
            clock=lambda: NOW,
        )
        organizer, meeting_type = await seed()

        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        await orchestrator.drain()

        assert notifier.confirmed == [meeting.uid]


class TestStatusChanges:
    async def test_cancel_frees_slot(self, orchestrator, seed, attendee, notifier, calendar):
        organizer, meeting_type = await seed()
        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        cancelled = await orchestrator.cancel(meeting.uid, "Out sick")
        await orchestrator.drain()

        assert cancelled.status == CANCELLED
        assert cancelled.cancellation_reason == "Out sick"
        assert notifier.cancelled == [meeting.uid]
        assert calendar.cancelled == [meeting.uid]

        again = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        assert again.status == CONFIRMED

    async def test_cancel_twice_rejected(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        await orchestrator.cancel(meeting.uid)

        with pytest.raises(InvalidTransition):
            await orchestrator.cancel(meeting.uid)

    async def test_cannot_cancel_started_meeting(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        orchestrator.clock = lambda: MONDAY_9AM + timedelta(minutes=5)
        with pytest.raises(InvalidTransition, match="already started"):
            await orchestrator.cancel(meeting.uid)

    async def test_unknown_meeting(self, orchestrator):
        with pytest.raises(MeetingNotFound):
            await orchestrator.cancel("missing-uid")

    async def test_request_reschedule_then_confirm(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        requested = await orchestrator.request_reschedule(meeting.uid)
        assert requested.status == RESCHEDULE_REQUESTED

        confirmed = await orchestrator.confirm(meeting.uid)
        assert confirmed.status == CONFIRMED

    async def test_complete(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        meeting = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        completed = await orchestrator.complete(meeting.uid)
        assert completed.status == COMPLETED

        with pytest.raises(InvalidTransition):
            await orchestrator.complete(meeting.uid)

    async def test_complete_finished_meetings(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        early = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        late = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM + timedelta(hours=2), attendee)

        count = await orchestrator.complete_finished_meetings(MONDAY_9AM + timedelta(hours=1))

        assert count == 1
        assert (await orchestrator.get_meeting(early.uid)).status == COMPLETED
        assert (await orchestrator.get_meeting(late.uid)).status == CONFIRMED


class TestReschedule:
    async def test_moves_meeting(self, orchestrator, seed, attendee, calendar):
        organizer, meeting_type = await seed()
        original = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        replacement = await orchestrator.reschedule(original.uid, MONDAY_9AM + timedelta(hours=2))
        await orchestrator.drain()

        assert replacement.status == CONFIRMED
        assert replacement.uid != original.uid
        assert replacement.rescheduled_from_uid == original.uid
        assert replacement.start_utc == MONDAY_9AM + timedelta(hours=2)

        old = await orchestrator.get_meeting(original.uid)
        assert old.status == CANCELLED
        assert old.cancellation_reason == "Rescheduled"
        assert original.uid in calendar.cancelled
        assert replacement.uid in calendar.created

    async def test_own_time_does_not_conflict(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed(buffer_minutes=15)
        original = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)

        replacement = await orchestrator.reschedule(original.uid, MONDAY_9AM + timedelta(minutes=30))

        assert replacement.start_utc == MONDAY_9AM + timedelta(minutes=30)

    async def test_taken_target_leaves_original_untouched(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        original = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        other = Attendee(name="Other", email="other@example.com")
        await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM + timedelta(hours=1), other)

        with pytest.raises(SlotNoLongerAvailable):
            await orchestrator.reschedule(original.uid, MONDAY_9AM + timedelta(hours=1))

        assert (await orchestrator.get_meeting(original.uid)).status == CONFIRMED

    async def test_cancelled_meeting_cannot_be_rescheduled(self, orchestrator, seed, attendee):
        organizer, meeting_type = await seed()
        original = await orchestrator.book(organizer.id, meeting_type.id, MONDAY_9AM, attendee)
        await orchestrator.cancel(original.uid)

        with pytest.raises(InvalidTransition):
            await orchestrator.reschedule(original.uid, MONDAY_9AM + timedelta(hours=2))
