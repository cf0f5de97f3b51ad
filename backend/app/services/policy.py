"""Scheduling policy values and the meeting status state machine.

Pure functions only: nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.errors import InvalidPolicy, InvalidTransition
from app.models.meeting import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PENDING,
    RESCHEDULE_REQUESTED,
    TERMINAL_STATUSES,
)

BUFFER_MINUTES_RANGE = (0, 120)
ADVANCE_BOOKING_DAYS_RANGE = (1, 365)
MIN_ADVANCE_HOURS_RANGE = (0, 168)
MEETING_DURATION_RANGE = (15, 480)

DEFAULT_BUFFER_MINUTES = 15
DEFAULT_ADVANCE_BOOKING_DAYS = 90
DEFAULT_MIN_ADVANCE_HOURS = 3


@dataclass(frozen=True)
class SchedulingPolicy:
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES
    advance_booking_days: int = DEFAULT_ADVANCE_BOOKING_DAYS
    min_advance_hours: int = DEFAULT_MIN_ADVANCE_HOURS

    def __post_init__(self):
        validate_policy(self.buffer_minutes, self.advance_booking_days, self.min_advance_hours)

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)

    def earliest_start(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.min_advance_hours)

    def latest_end(self, now: datetime) -> datetime:
        return now + timedelta(days=self.advance_booking_days)


def _check_range(name: str, value, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPolicy(f"{name} must be an integer")
    if not low <= value <= high:
        raise InvalidPolicy(f"{name} must be between {low} and {high}")


def validate_policy(buffer_minutes, advance_booking_days, min_advance_hours) -> None:
    _check_range("buffer_minutes", buffer_minutes, BUFFER_MINUTES_RANGE)
    _check_range("advance_booking_days", advance_booking_days, ADVANCE_BOOKING_DAYS_RANGE)
    _check_range("min_advance_hours", min_advance_hours, MIN_ADVANCE_HOURS_RANGE)


def valid_meeting_duration(minutes) -> bool:
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        return False
    low, high = MEETING_DURATION_RANGE
    return low <= minutes <= high


# ==================== MEETING STATUS ====================

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({CANCELLED, COMPLETED, RESCHEDULE_REQUESTED}),
    RESCHEDULE_REQUESTED: frozenset({CONFIRMED, CANCELLED}),
    CANCELLED: frozenset(),
    COMPLETED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, new: str) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"Meeting is already {current}")
    if not can_transition(current, new):
        raise InvalidTransition(f"Cannot move a {current} meeting to {new}")


def meeting_has_started(start_time: datetime, now: datetime) -> bool:
    return start_time <= now


def ensure_modifiable(status: str, start_time: datetime, now: datetime, action: str) -> None:
    """Cancel/reschedule guard: terminal or already started meetings are frozen."""
    if status == CANCELLED:
        raise InvalidTransition(f"Cannot {action} a cancelled meeting")
    if status == COMPLETED:
        raise InvalidTransition(f"Cannot {action} a completed meeting")
    if meeting_has_started(start_time, now):
        raise InvalidTransition(f"Cannot {action} a meeting that has already started")
