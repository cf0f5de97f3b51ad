"""
Booking Orchestrator

Turns a requested slot into a confirmed meeting and owns every later status
change (cancel, reschedule, complete).

Booking flow:
1. Preconditions (organizer active, meeting type valid, calendar connected)
2. Policy re-validation of the single slot
3. Optimistic overlap check outside the lock
4. Organizer lock, overlap re-check, insert as confirmed, commit
5. Lock released, notifications and calendar sync scheduled in the background
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.database import AsyncSessionLocal
from app.core.errors import (
    MeetingNotFound,
    OrganizerNotBookable,
    PersistenceUnavailable,
    SlotNoLongerAvailable,
    SlotViolatesPolicy,
)
from app.models import Meeting
from app.models.meeting import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    RESCHEDULE_REQUESTED,
    new_meeting_uid,
)
from app.services.calendar_sync import CalendarSync, CalendarSyncService
from app.services.conflict_guard import ConflictGuard
from app.services.db_service import DBService
from app.services.notifications import NotificationDispatcher, NotificationService
from app.services.policy import (
    SchedulingPolicy,
    ensure_modifiable,
    ensure_transition,
    valid_meeting_duration,
)
from app.services.side_effects import SideEffectRunner
from app.services.slot_generator import BusyInterval, conflicting, validate_requested_slot
from app.services.timezones import as_utc, is_valid_timezone, utcnow

logger = logging.getLogger(__name__)

RESCHEDULED_REASON = "Rescheduled"


@dataclass
class Attendee:
    name: str
    email: str
    phone: Optional[str] = None
    timezone: Optional[str] = None


class BookingOrchestrator:
    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        guard: Optional[ConflictGuard] = None,
        notifier: Optional[NotificationDispatcher] = None,
        calendar_sync: Optional[CalendarSync] = None,
        side_effects: Optional[SideEffectRunner] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.guard = guard or ConflictGuard()
        self.notifier = notifier or NotificationService(session_factory=session_factory)
        self.calendar_sync = calendar_sync or CalendarSyncService(session_factory)
        self.side_effects = side_effects or SideEffectRunner()
        self.clock = clock

    @asynccontextmanager
    async def _db(self):
        try:
            async with self.session_factory() as session:
                yield DBService(session)
        except SQLAlchemyError as exc:
            logger.exception("Database error in booking operation")
            raise PersistenceUnavailable() from exc

    # ==================== BOOK ====================

    async def book(
        self,
        organizer_id,
        meeting_type_id,
        start_time: datetime,
        attendee: Attendee,
        end_time: Optional[datetime] = None,
    ) -> Meeting:
        """Book ``start_time`` for ``attendee``. Returns the confirmed meeting.

        Raises OrganizerNotBookable, SlotViolatesPolicy, SlotNoLongerAvailable,
        BookingContention or PersistenceUnavailable. Nothing is written unless
        the meeting is confirmed.
        """
        now = self.clock()
        start_time = as_utc(start_time)

        async with self._db() as db:
            organizer, meeting_type = await self._load_bookable(db, organizer_id, meeting_type_id)
            rules = await db.load_availability(organizer.id)
            policy = await db.load_policy(organizer.id)

        duration = meeting_type.duration_minutes
        end_time = as_utc(end_time) if end_time is not None else start_time + timedelta(minutes=duration)
        validate_requested_slot(rules, policy, start_time, end_time, duration_minutes=duration, now=now)

        # Cheap early rejection; the authoritative check runs under the lock
        async with self._db() as db:
            busy = await self._busy(db, organizer.id, start_time, end_time, policy)
        if conflicting(start_time, end_time, busy, policy.buffer):
            logger.info(f"Slot {start_time.isoformat()} for organizer {organizer.id} already taken")
            raise SlotNoLongerAvailable()

        data = {
            "uid": new_meeting_uid(),
            "organizer_id": organizer.id,
            "meeting_type_id": meeting_type.id,
            "attendee_name": attendee.name,
            "attendee_email": attendee.email,
            "attendee_phone": attendee.phone,
            "start_time": start_time,
            "end_time": end_time,
            "attendee_timezone": self._attendee_timezone(attendee, organizer),
            "organizer_timezone": organizer.timezone,
            "status": CONFIRMED,
        }

        async def commit_booking() -> Meeting:
            async with self._db() as db:
                busy = await self._busy(db, organizer.id, start_time, end_time, policy, for_update=True)
                if conflicting(start_time, end_time, busy, policy.buffer):
                    logger.info(f"Lost race for slot {start_time.isoformat()} of organizer {organizer.id}")
                    raise SlotNoLongerAvailable()
                return await db.insert_meeting(data)

        meeting = await self.guard.with_organizer_lock(organizer.id, commit_booking)
        logger.info(f"Booked meeting {meeting.uid} for organizer {organizer.id} at {start_time.isoformat()}")

        self._after_confirmed(meeting)
        return meeting

    async def _load_bookable(self, db: DBService, organizer_id, meeting_type_id):
        organizer = await db.get_organizer(organizer_id)
        if organizer is None or not organizer.is_active:
            raise OrganizerNotBookable("Organizer not found or not accepting bookings")

        meeting_type = await db.get_meeting_type(meeting_type_id)
        if meeting_type is None or meeting_type.organizer_id != organizer.id or not meeting_type.is_active:
            raise OrganizerNotBookable("Meeting type is not offered by this organizer")
        if not valid_meeting_duration(meeting_type.duration_minutes):
            raise SlotViolatesPolicy(f"Meeting duration {meeting_type.duration_minutes} is not bookable")

        if (organizer.requires_calendar or meeting_type.requires_calendar) and not organizer.calendar_connected:
            raise OrganizerNotBookable("Organizer calendar is not connected")
        return organizer, meeting_type

    async def _busy(
        self,
        db: DBService,
        organizer_id,
        start_time: datetime,
        end_time: datetime,
        policy: SchedulingPolicy,
        *,
        for_update: bool = False,
    ) -> List[BusyInterval]:
        meetings = await db.load_active_meetings(
            organizer_id,
            start_time - policy.buffer,
            end_time + policy.buffer,
            for_update=for_update,
        )
        return [BusyInterval.from_meeting(m) for m in meetings]

    @staticmethod
    def _attendee_timezone(attendee: Attendee, organizer) -> str:
        if attendee.timezone and is_valid_timezone(attendee.timezone):
            return attendee.timezone
        return organizer.timezone

    # ==================== LOOKUP ====================

    async def get_meeting(self, uid: str) -> Meeting:
        async with self._db() as db:
            meeting = await db.get_meeting_by_uid(uid)
        if meeting is None:
            raise MeetingNotFound()
        return meeting

    # ==================== STATUS CHANGES ====================

    async def cancel(self, uid: str, reason: Optional[str] = None) -> Meeting:
        now = self.clock()
        current = await self.get_meeting(uid)

        async def apply() -> Meeting:
            async with self._db() as db:
                meeting = await db.get_meeting_by_uid(uid, for_update=True)
                ensure_modifiable(meeting.status, as_utc(meeting.start_time), now, "cancel")
                ensure_transition(meeting.status, CANCELLED)
                return await db.update_meeting_status(uid, CANCELLED, cancellation_reason=reason)

        meeting = await self.guard.with_organizer_lock(current.organizer_id, apply)
        logger.info(f"Cancelled meeting {uid}")

        self._after_cancelled(meeting)
        return meeting

    async def request_reschedule(self, uid: str) -> Meeting:
        now = self.clock()
        current = await self.get_meeting(uid)

        async def apply() -> Meeting:
            async with self._db() as db:
                meeting = await db.get_meeting_by_uid(uid, for_update=True)
                ensure_modifiable(meeting.status, as_utc(meeting.start_time), now, "reschedule")
                ensure_transition(meeting.status, RESCHEDULE_REQUESTED)
                return await db.update_meeting_status(uid, RESCHEDULE_REQUESTED)

        meeting = await self.guard.with_organizer_lock(current.organizer_id, apply)
        logger.info(f"Reschedule requested for meeting {uid}")
        return meeting

    async def confirm(self, uid: str) -> Meeting:
        """Pending or reschedule-requested meeting back to confirmed at its current time."""
        now = self.clock()
        current = await self.get_meeting(uid)

        async def apply() -> Meeting:
            async with self._db() as db:
                meeting = await db.get_meeting_by_uid(uid, for_update=True)
                ensure_modifiable(meeting.status, as_utc(meeting.start_time), now, "confirm")
                ensure_transition(meeting.status, CONFIRMED)
                return await db.update_meeting_status(uid, CONFIRMED)

        meeting = await self.guard.with_organizer_lock(current.organizer_id, apply)
        logger.info(f"Confirmed meeting {uid}")
        return meeting

    async def complete(self, uid: str) -> Meeting:
        current = await self.get_meeting(uid)

        async def apply() -> Meeting:
            async with self._db() as db:
                meeting = await db.get_meeting_by_uid(uid, for_update=True)
                ensure_transition(meeting.status, COMPLETED)
                return await db.update_meeting_status(uid, COMPLETED)

        meeting = await self.guard.with_organizer_lock(current.organizer_id, apply)
        logger.info(f"Completed meeting {uid}")
        return meeting

    async def reschedule(
        self,
        uid: str,
        new_start_time: datetime,
        attendee_timezone: Optional[str] = None,
    ) -> Meeting:
        """Move a meeting to ``new_start_time``.

        A new confirmed meeting linked by ``rescheduled_from_uid`` is created
        and the old one cancelled in the same transaction. The old meeting's
        own time does not count as a conflict.
        """
        now = self.clock()
        new_start_time = as_utc(new_start_time)
        old = await self.get_meeting(uid)
        ensure_modifiable(old.status, as_utc(old.start_time), now, "reschedule")
        ensure_transition(old.status, CANCELLED)

        async with self._db() as db:
            if old.meeting_type_id is not None:
                organizer, meeting_type = await self._load_bookable(db, old.organizer_id, old.meeting_type_id)
                duration = meeting_type.duration_minutes
            else:
                organizer = await db.get_organizer(old.organizer_id)
                if organizer is None or not organizer.is_active:
                    raise OrganizerNotBookable("Organizer not found or not accepting bookings")
                duration = int((as_utc(old.end_time) - as_utc(old.start_time)).total_seconds() // 60)
            rules = await db.load_availability(organizer.id)
            policy = await db.load_policy(organizer.id)

        new_end_time = new_start_time + timedelta(minutes=duration)
        validate_requested_slot(rules, policy, new_start_time, new_end_time, duration_minutes=duration, now=now)

        async def apply():
            async with self._db() as db:
                previous = await db.get_meeting_by_uid(uid, for_update=True)
                ensure_modifiable(previous.status, as_utc(previous.start_time), now, "reschedule")
                ensure_transition(previous.status, CANCELLED)

                busy = await self._busy(db, organizer.id, new_start_time, new_end_time, policy, for_update=True)
                if conflicting(new_start_time, new_end_time, busy, policy.buffer, exclude_uid=uid):
                    logger.info(f"Reschedule target {new_start_time.isoformat()} for meeting {uid} is taken")
                    raise SlotNoLongerAvailable()

                replacement = await db.insert_meeting(
                    {
                        "uid": new_meeting_uid(),
                        "organizer_id": previous.organizer_id,
                        "meeting_type_id": previous.meeting_type_id,
                        "attendee_name": previous.attendee_name,
                        "attendee_email": previous.attendee_email,
                        "attendee_phone": previous.attendee_phone,
                        "start_time": new_start_time,
                        "end_time": new_end_time,
                        "attendee_timezone": attendee_timezone
                        if attendee_timezone and is_valid_timezone(attendee_timezone)
                        else previous.attendee_timezone,
                        "organizer_timezone": organizer.timezone,
                        "status": CONFIRMED,
                        "rescheduled_from_uid": uid,
                    },
                    commit=False,
                )
                await db.update_meeting_status(
                    uid, CANCELLED, commit=False, cancellation_reason=RESCHEDULED_REASON
                )
                await db.session.commit()
                await db.session.refresh(replacement)
                await db.session.refresh(previous)
                return previous, replacement

        cancelled, replacement = await self.guard.with_organizer_lock(organizer.id, apply)
        logger.info(f"Rescheduled meeting {uid} to {replacement.uid} at {new_start_time.isoformat()}")

        self._fire_calendar_cancel(cancelled)
        self._after_confirmed(replacement)
        return replacement

    async def complete_finished_meetings(self, now: Optional[datetime] = None) -> int:
        """Mark confirmed meetings whose end has passed as completed. Returns the count."""
        now = as_utc(now or self.clock())
        async with self._db() as db:
            finished = await db.list_finished_meetings(now)
            for meeting in finished:
                meeting.status = COMPLETED
            if finished:
                await db.session.commit()
        if finished:
            logger.info(f"Marked {len(finished)} finished meetings as completed")
        return len(finished)

    # ==================== SIDE EFFECTS ====================

    def _after_confirmed(self, meeting: Meeting) -> None:
        self.side_effects.fire(
            f"notify_confirmed:{meeting.uid}",
            lambda: self.notifier.notify_booking_confirmed(meeting),
        )
        self.side_effects.fire(
            f"calendar_create:{meeting.uid}",
            lambda: self.calendar_sync.sync_event_created(meeting),
            on_give_up=lambda exc: logger.error(
                f"Calendar out of sync: event for meeting {meeting.uid} was not created ({exc})"
            ),
        )

    def _after_cancelled(self, meeting: Meeting) -> None:
        self.side_effects.fire(
            f"notify_cancelled:{meeting.uid}",
            lambda: self.notifier.notify_booking_cancelled(meeting),
        )
        self._fire_calendar_cancel(meeting)

    def _fire_calendar_cancel(self, meeting: Meeting) -> None:
        self.side_effects.fire(
            f"calendar_cancel:{meeting.uid}",
            lambda: self.calendar_sync.sync_event_cancelled(meeting),
            on_give_up=lambda exc: logger.error(
                f"Calendar out of sync: event for meeting {meeting.uid} was not removed ({exc})"
            ),
        )

    async def drain(self) -> None:
        await self.side_effects.drain()
