"""Availability rules and their expansion into concrete UTC intervals.

The rules are plain frozen dataclasses so slot computation can run over a
snapshot without holding a database session. Expansion follows the
organizer's named timezone, so a 09:00-17:00 window keeps its wall-clock
meaning on both sides of a DST change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from app.services.timezones import local_to_utc, resolve_timezone

Interval = Tuple[datetime, datetime]


@dataclass(frozen=True)
class WeeklyWindow:
    day_of_week: int  # 0 = Monday
    start_time: time
    end_time: time
    is_available: bool = True


@dataclass(frozen=True)
class DateOverride:
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: bool = False

    @property
    def whole_day(self) -> bool:
        return self.start_time is None or self.end_time is None


@dataclass(frozen=True)
class AvailabilityRules:
    timezone: str = "UTC"
    windows: Tuple[WeeklyWindow, ...] = field(default_factory=tuple)
    overrides: Tuple[DateOverride, ...] = field(default_factory=tuple)

    @property
    def tzinfo(self):
        tz, _ = resolve_timezone(self.timezone, context="organizer availability")
        return tz


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Join overlapping or adjacent intervals."""
    ordered = sorted(intervals)
    if not ordered:
        return []

    merged = [ordered[0]]
    for start, end in ordered[1:]:
        last_start, last_end = merged[-1]
        if start <= last_end:
            if end > last_end:
                merged[-1] = (last_start, end)
        else:
            merged.append((start, end))
    return merged


def subtract_interval(interval: Interval, block: Interval) -> List[Interval]:
    """Remove ``block`` from ``interval``; returns zero, one or two pieces."""
    start, end = interval
    block_start, block_end = block

    if block_end <= start or block_start >= end:
        return [interval]

    pieces = []
    if block_start > start:
        pieces.append((start, block_start))
    if block_end < end:
        pieces.append((block_end, end))
    return pieces


def _to_interval(day: date, start_time: time, end_time: time, tz) -> Optional[Interval]:
    # Zero-length or inverted windows contribute nothing
    if end_time <= start_time:
        return None
    return local_to_utc(day, start_time, tz), local_to_utc(day, end_time, tz)


def expand_day(rules: AvailabilityRules, day: date, tz=None) -> List[Interval]:
    """Available UTC intervals on the organizer-local date ``day``.

    Steps:
        1. Weekly available windows for the weekday.
        2. Date overrides: a whole-day closure wins, partial closures block,
           available overrides add extra windows.
        3. Weekly ``is_available=False`` windows are subtracted as breaks.
    """
    tz = tz or rules.tzinfo
    weekday = day.weekday()

    available: List[Interval] = []
    blocks: List[Interval] = []

    for window in rules.windows:
        if window.day_of_week != weekday:
            continue
        interval = _to_interval(day, window.start_time, window.end_time, tz)
        if interval is None:
            continue
        (available if window.is_available else blocks).append(interval)

    for override in rules.overrides:
        if override.date != day:
            continue
        if not override.is_available:
            if override.whole_day:
                return []
            interval = _to_interval(day, override.start_time, override.end_time, tz)
            if interval is not None:
                blocks.append(interval)
        elif not override.whole_day:
            interval = _to_interval(day, override.start_time, override.end_time, tz)
            if interval is not None:
                available.append(interval)

    intervals = merge_intervals(available)
    for block in blocks:
        remaining: List[Interval] = []
        for interval in intervals:
            remaining.extend(subtract_interval(interval, block))
        intervals = remaining

    return intervals
