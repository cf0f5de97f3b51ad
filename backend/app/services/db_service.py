from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from app.models import Organizer, AvailabilityWindow, AvailabilityOverride, MeetingType, Meeting
from app.models.meeting import ACTIVE_STATUSES, CONFIRMED
from app.services.availability import AvailabilityRules, WeeklyWindow, DateOverride
from app.services.policy import SchedulingPolicy, validate_policy
from app.services.timezones import as_utc
from typing import Iterable, Optional, List
from datetime import datetime
import uuid


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class DBService:
    """
    Service for database operations

    Write helpers commit by default; pass ``commit=False`` to group several
    writes into one transaction (the caller commits).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== ORGANIZERS ====================

    async def get_organizer(self, organizer_id) -> Optional[Organizer]:
        """Get organizer by ID"""
        o_uuid = _as_uuid(organizer_id)
        if o_uuid is None:
            return None

        result = await self.session.execute(
            select(Organizer).where(Organizer.id == o_uuid)
        )
        return result.scalar_one_or_none()

    async def create_organizer(self, data: dict) -> Organizer:
        """Create new organizer; policy fields are validated before insert"""
        organizer = Organizer(**data)
        validate_policy(
            organizer.buffer_minutes if organizer.buffer_minutes is not None else 15,
            organizer.advance_booking_days if organizer.advance_booking_days is not None else 90,
            organizer.min_advance_hours if organizer.min_advance_hours is not None else 3,
        )
        self.session.add(organizer)
        await self.session.commit()
        await self.session.refresh(organizer)
        return organizer

    async def update_organizer(self, organizer_id, data: dict) -> Optional[Organizer]:
        """Update organizer fields by ID."""
        organizer = await self.get_organizer(organizer_id)
        if organizer:
            for key, value in data.items():
                setattr(organizer, key, value)
            validate_policy(
                organizer.buffer_minutes,
                organizer.advance_booking_days,
                organizer.min_advance_hours,
            )
            await self.session.commit()
            await self.session.refresh(organizer)
        return organizer

    async def load_policy(self, organizer_id) -> Optional[SchedulingPolicy]:
        organizer = await self.get_organizer(organizer_id)
        if organizer is None:
            return None
        return SchedulingPolicy(
            buffer_minutes=organizer.buffer_minutes,
            advance_booking_days=organizer.advance_booking_days,
            min_advance_hours=organizer.min_advance_hours,
        )

    # ==================== AVAILABILITY ====================

    async def load_availability(self, organizer_id) -> Optional[AvailabilityRules]:
        """Snapshot of the organizer's weekly windows and date overrides."""
        organizer = await self.get_organizer(organizer_id)
        if organizer is None:
            return None

        windows = await self.session.execute(
            select(AvailabilityWindow)
            .where(AvailabilityWindow.organizer_id == organizer.id)
            .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
        )
        overrides = await self.session.execute(
            select(AvailabilityOverride)
            .where(AvailabilityOverride.organizer_id == organizer.id)
            .order_by(AvailabilityOverride.date)
        )

        return AvailabilityRules(
            timezone=organizer.timezone,
            windows=tuple(
                WeeklyWindow(w.day_of_week, w.start_time, w.end_time, w.is_available)
                for w in windows.scalars().all()
            ),
            overrides=tuple(
                DateOverride(o.date, o.start_time, o.end_time, o.is_available)
                for o in overrides.scalars().all()
            ),
        )

    async def replace_weekly_availability(
        self,
        organizer_id,
        windows: Iterable[dict],
    ) -> List[AvailabilityWindow]:
        """Replace every weekly window of an organizer in one transaction."""
        o_uuid = _as_uuid(organizer_id)
        await self.session.execute(
            delete(AvailabilityWindow).where(AvailabilityWindow.organizer_id == o_uuid)
        )
        rows = [AvailabilityWindow(organizer_id=o_uuid, **window) for window in windows]
        self.session.add_all(rows)
        await self.session.commit()
        return rows

    async def add_override(self, organizer_id, data: dict) -> AvailabilityOverride:
        override = AvailabilityOverride(organizer_id=_as_uuid(organizer_id), **data)
        self.session.add(override)
        await self.session.commit()
        await self.session.refresh(override)
        return override

    # ==================== MEETING TYPES ====================

    async def create_meeting_type(self, organizer_id, data: dict) -> MeetingType:
        meeting_type = MeetingType(organizer_id=_as_uuid(organizer_id), **data)
        self.session.add(meeting_type)
        await self.session.commit()
        await self.session.refresh(meeting_type)
        return meeting_type

    async def get_meeting_type(self, meeting_type_id) -> Optional[MeetingType]:
        t_uuid = _as_uuid(meeting_type_id)
        if t_uuid is None:
            return None
        result = await self.session.execute(
            select(MeetingType).where(MeetingType.id == t_uuid)
        )
        return result.scalar_one_or_none()

    # ==================== MEETINGS ====================

    async def load_active_meetings(
        self,
        organizer_id,
        start: datetime,
        end: datetime,
        *,
        for_update: bool = False,
    ) -> List[Meeting]:
        """Active meetings of an organizer intersecting ``[start, end)``.

        ``for_update`` row-locks the result on databases that support it, so
        concurrent app instances serialize on the same conflict set.
        """
        o_uuid = _as_uuid(organizer_id)
        if o_uuid is None:
            return []

        query = (
            select(Meeting)
            .where(
                Meeting.organizer_id == o_uuid,
                Meeting.status.in_(ACTIVE_STATUSES),
                Meeting.start_time < as_utc(end),
                Meeting.end_time > as_utc(start),
            )
            .order_by(Meeting.start_time)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def insert_meeting(self, data: dict, *, commit: bool = True) -> Meeting:
        """Create new meeting"""
        data = dict(data)
        data["start_time"] = as_utc(data["start_time"])
        data["end_time"] = as_utc(data["end_time"])
        meeting = Meeting(**data)
        self.session.add(meeting)
        if commit:
            await self.session.commit()
            await self.session.refresh(meeting)
        else:
            await self.session.flush()
        return meeting

    async def get_meeting_by_uid(self, uid: str, *, for_update: bool = False) -> Optional[Meeting]:
        query = select(Meeting).where(Meeting.uid == uid)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def update_meeting_status(
        self,
        uid: str,
        new_status: str,
        *,
        commit: bool = True,
        **fields,
    ) -> Optional[Meeting]:
        """Set a meeting's status (plus any extra columns such as cancellation_reason).

        Transition rules are enforced by the caller; this only writes.
        """
        meeting = await self.get_meeting_by_uid(uid)
        if meeting:
            meeting.status = new_status
            for key, value in fields.items():
                setattr(meeting, key, value)
            if commit:
                await self.session.commit()
                await self.session.refresh(meeting)
            else:
                await self.session.flush()
        return meeting

    async def list_organizer_meetings(
        self,
        organizer_id,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
    ) -> List[Meeting]:
        """Get meetings for an organizer ordered by start time"""
        o_uuid = _as_uuid(organizer_id)
        if o_uuid is None:
            return []

        query = select(Meeting).where(Meeting.organizer_id == o_uuid)
        if statuses:
            query = query.where(Meeting.status.in_(list(statuses)))
        query = query.order_by(Meeting.start_time).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_finished_meetings(self, now: datetime, limit: int = 200) -> List[Meeting]:
        """Confirmed meetings whose end time has passed."""
        result = await self.session.execute(
            select(Meeting)
            .where(Meeting.status == CONFIRMED, Meeting.end_time <= as_utc(now))
            .order_by(Meeting.end_time)
            .limit(limit)
        )
        return list(result.scalars().all())
