from __future__ import annotations

from typing import Optional

from app.integrations.providers.base import CalendarSyncResult


class NativeCalendarProvider:
    """Meetings live only in our database; nothing to mirror."""

    name = "native"

    async def create_event(self, organizer, meeting, meeting_type_name: Optional[str] = None) -> CalendarSyncResult:
        return CalendarSyncResult(synced=False, reason="no external calendar")

    async def cancel_event(self, organizer, meeting) -> CalendarSyncResult:
        return CalendarSyncResult(synced=False, reason="no external calendar")
