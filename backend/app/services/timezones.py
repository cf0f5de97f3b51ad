from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC)


def resolve_timezone(name: str | None, *, context: str = "") -> tuple[ZoneInfo | timezone, str]:
    """Return ``(tzinfo, effective_name)`` for an IANA timezone name.

    Unknown or empty names fall back to UTC with a warning instead of
    raising, so a bad profile setting never takes the booking page down.
    """
    if not name:
        return UTC, "UTC"
    if name.upper() in ("UTC", "ETC/UTC", "Z"):
        return UTC, "UTC"
    try:
        return ZoneInfo(name), name
    except (ZoneInfoNotFoundError, ValueError):
        suffix = f" for {context}" if context else ""
        logger.warning(f"Invalid timezone {name!r}{suffix}, falling back to UTC")
        return UTC, "UTC"


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    if name.upper() in ("UTC", "ETC/UTC", "Z"):
        return True
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC instant.

    Naive values are treated as UTC; SQLite hands back naive datetimes even
    for ``DateTime(timezone=True)`` columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def local_to_utc(day: date, wall_time: time, tz) -> datetime:
    """Resolve a wall-clock time on ``day`` in ``tz`` to a UTC instant.

    Wall times inside a DST gap resolve with the pre-transition offset
    (``fold=0``), which lands them just after the gap.
    """
    return datetime.combine(day, wall_time, tzinfo=tz).astimezone(UTC)


def local_date(instant: datetime, tz) -> date:
    return as_utc(instant).astimezone(tz).date()
