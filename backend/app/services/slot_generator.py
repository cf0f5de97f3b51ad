"""
Slot Generation Service

Computes bookable slots for an organizer, considering:
- Weekly availability windows and date overrides (organizer timezone)
- Minimum notice and maximum advance window
- Existing active meetings plus the organizer's buffer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from app.core.database import AsyncSessionLocal
from app.core.errors import SlotViolatesPolicy
from app.services.availability import AvailabilityRules, Interval, expand_day
from app.services.db_service import DBService
from app.services.policy import SchedulingPolicy
from app.services.timezones import UTC, as_utc, local_date, resolve_timezone, utcnow

logger = logging.getLogger(__name__)

# Custom slot strides must be multiples of this
SLOT_GRID_MINUTES = 5


@dataclass(frozen=True, order=True)
class SlotCandidate:
    """A bookable interval. ``start_time``/``end_time`` are UTC instants."""

    start_time: datetime
    end_time: datetime
    display_timezone: str = "UTC"

    @property
    def local_start(self) -> datetime:
        tz, _ = resolve_timezone(self.display_timezone)
        return self.start_time.astimezone(tz)

    @property
    def local_end(self) -> datetime:
        tz, _ = resolve_timezone(self.display_timezone)
        return self.end_time.astimezone(tz)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "local_start": self.local_start.isoformat(),
            "local_end": self.local_end.isoformat(),
            "timezone": self.display_timezone,
        }


@dataclass(frozen=True)
class BusyInterval:
    """Time held by an active meeting."""

    start_time: datetime
    end_time: datetime
    uid: Optional[str] = None

    @classmethod
    def from_meeting(cls, meeting) -> "BusyInterval":
        return cls(as_utc(meeting.start_time), as_utc(meeting.end_time), meeting.uid)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    # Half-open intervals: touching ends do not overlap
    return start < other_end and other_start < end


def discretize(
    window: Interval,
    duration_minutes: int,
    interval_minutes: Optional[int] = None,
) -> List[Interval]:
    """Cut a window into slots of ``duration_minutes``.

    The first slot starts at the window start and slots advance by
    ``interval_minutes`` (defaults to the duration, i.e. back-to-back slots).
    A trailing remainder shorter than the duration is dropped.
    """
    if duration_minutes <= 0:
        return []
    duration = timedelta(minutes=duration_minutes)
    stride = timedelta(minutes=interval_minutes or duration_minutes)

    window_start, window_end = window
    slots = []
    current = window_start
    while current + duration <= window_end:
        slots.append((current, current + duration))
        current += stride
    return slots


def on_slot_grid(
    offset: timedelta,
    duration_minutes: int,
    interval_minutes: Optional[int] = None,
) -> bool:
    """Whether a slot starting ``offset`` after its window start could have been listed.

    Any stride the slot listing accepts is a multiple of SLOT_GRID_MINUTES, so a
    start on that grid (or on the default duration stride) is accepted whatever
    stride the caller browsed with.
    """
    if offset < timedelta(0) or offset % timedelta(minutes=1):
        return False
    minutes = offset // timedelta(minutes=1)
    strides = {SLOT_GRID_MINUTES, duration_minutes}
    if interval_minutes:
        strides.add(interval_minutes)
    return any(minutes % stride == 0 for stride in strides if stride > 0)


def conflicting(
    start: datetime,
    end: datetime,
    busy: Iterable[BusyInterval],
    buffer: timedelta,
    exclude_uid: Optional[str] = None,
) -> List[BusyInterval]:
    """Busy intervals whose buffered range ``[start - buffer, end + buffer)`` meets the slot."""
    hits = []
    for item in busy:
        if exclude_uid is not None and item.uid == exclude_uid:
            continue
        if overlaps(start, end, item.start_time - buffer, item.end_time + buffer):
            hits.append(item)
    return hits


def _requested_bounds(start_date: date, end_date: date, tz) -> Tuple[datetime, datetime]:
    lower = datetime.combine(start_date, time.min, tzinfo=tz).astimezone(UTC)
    upper = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz).astimezone(UTC)
    return lower, upper


def generate_slots(
    rules: AvailabilityRules,
    policy: SchedulingPolicy,
    busy: Sequence[BusyInterval],
    *,
    duration_minutes: int,
    start_date: date,
    end_date: date,
    requester_timezone: Optional[str],
    now: datetime,
    interval_minutes: Optional[int] = None,
) -> List[SlotCandidate]:
    """Pure slot computation over a snapshot of rules, policy and meetings.

    The date range is read in the requester's timezone. Organizer-local days
    around it are expanded too, because with a large offset an organizer
    window from the previous or next local day can land on the requested
    dates.
    """
    if end_date < start_date or duration_minutes <= 0:
        return []

    now = as_utc(now)
    organizer_tz = rules.tzinfo
    requester_tz, display_name = resolve_timezone(requester_timezone, context="slot display")

    lower, upper = _requested_bounds(start_date, end_date, requester_tz)
    earliest = max(lower, policy.earliest_start(now))
    latest_end = policy.latest_end(now)

    today = local_date(now, organizer_tz)
    first_day = max(local_date(lower, organizer_tz), today)
    last_day = min(local_date(upper, organizer_tz), today + timedelta(days=policy.advance_booking_days))

    buffer = policy.buffer
    seen = set()
    slots: List[SlotCandidate] = []

    day = first_day
    while day <= last_day:
        for window in expand_day(rules, day, organizer_tz):
            for slot_start, slot_end in discretize(window, duration_minutes, interval_minutes):
                if slot_start < earliest or slot_start >= upper or slot_end > latest_end:
                    continue
                if conflicting(slot_start, slot_end, busy, buffer):
                    continue
                key = (slot_start, slot_end)
                if key in seen:
                    continue
                seen.add(key)
                slots.append(SlotCandidate(slot_start, slot_end, display_name))
        day += timedelta(days=1)

    slots.sort(key=lambda slot: (slot.start_time, slot.end_time))
    return slots


def validate_requested_slot(
    rules: AvailabilityRules,
    policy: SchedulingPolicy,
    start_time: datetime,
    end_time: datetime,
    *,
    duration_minutes: int,
    now: datetime,
    interval_minutes: Optional[int] = None,
) -> None:
    """Re-run the policy half of slot generation for one requested slot.

    Raises SlotViolatesPolicy naming the rule that failed. Meeting conflicts
    are checked separately because they are a race, not a policy problem.
    """
    start_time = as_utc(start_time)
    end_time = as_utc(end_time)
    now = as_utc(now)

    if end_time - start_time != timedelta(minutes=duration_minutes):
        raise SlotViolatesPolicy(f"Slot length must be exactly {duration_minutes} minutes")
    if start_time < policy.earliest_start(now):
        raise SlotViolatesPolicy(
            f"Booking requires at least {policy.min_advance_hours} hours advance notice"
        )
    if end_time > policy.latest_end(now):
        raise SlotViolatesPolicy(
            f"Booking cannot be more than {policy.advance_booking_days} days in advance"
        )

    organizer_tz = rules.tzinfo
    day = local_date(start_time, organizer_tz)
    for window_start, window_end in expand_day(rules, day, organizer_tz):
        if not (window_start <= start_time and end_time <= window_end):
            continue
        if on_slot_grid(start_time - window_start, duration_minutes, interval_minutes):
            return
    raise SlotViolatesPolicy("Requested time is outside the organizer's availability")


class SlotGenerator:
    """Loads a snapshot from the store and runs :func:`generate_slots` over it.

    Read-only and lock-free; nothing is cached between calls because
    availability can change under concurrent edits and bookings.
    """

    def __init__(self, session_factory=AsyncSessionLocal, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    async def generate_slots(
        self,
        organizer_id: str,
        duration_minutes: int,
        date_range: Tuple[date, date],
        requester_timezone: Optional[str] = None,
        interval_minutes: Optional[int] = None,
    ) -> List[SlotCandidate]:
        start_date, end_date = date_range
        now = self.clock()

        async with self.session_factory() as session:
            db = DBService(session)
            organizer = await db.get_organizer(organizer_id)
            if organizer is None or not organizer.is_active:
                return []
            rules = await db.load_availability(organizer_id)
            policy = await db.load_policy(organizer_id)
            if rules is None or policy is None:
                return []
            lower = datetime.combine(start_date - timedelta(days=1), time.min, tzinfo=UTC)
            upper = datetime.combine(end_date + timedelta(days=2), time.min, tzinfo=UTC)
            meetings = await db.load_active_meetings(
                organizer_id, lower - policy.buffer, upper + policy.buffer
            )

        busy = [BusyInterval.from_meeting(m) for m in meetings]
        slots = generate_slots(
            rules,
            policy,
            busy,
            duration_minutes=duration_minutes,
            start_date=start_date,
            end_date=end_date,
            requester_timezone=requester_timezone,
            now=now,
            interval_minutes=interval_minutes,
        )
        logger.debug(
            f"Generated {len(slots)} slots for organizer {organizer_id} "
            f"({start_date}..{end_date}, {duration_minutes} min)"
        )
        return slots
