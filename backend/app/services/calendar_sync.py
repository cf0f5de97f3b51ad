from __future__ import annotations

import logging
from typing import Optional, Protocol

from app.core.database import AsyncSessionLocal
from app.integrations.providers import CalendarSyncResult, resolve_provider
from app.services.db_service import DBService

logger = logging.getLogger(__name__)


class CalendarSync(Protocol):
    async def sync_event_created(self, meeting) -> CalendarSyncResult:
        ...

    async def sync_event_cancelled(self, meeting) -> CalendarSyncResult:
        ...


class CalendarSyncService:
    """Push meeting changes to the organizer's external calendar.

    Runs after the booking has committed. Errors propagate so the side-effect
    runner can retry; a meeting is never rolled back because its calendar
    event could not be written.
    """

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def _load(self, meeting):
        async with self.session_factory() as session:
            db = DBService(session)
            organizer = await db.get_organizer(meeting.organizer_id)
            meeting_type_name: Optional[str] = None
            if meeting.meeting_type_id is not None:
                meeting_type = await db.get_meeting_type(meeting.meeting_type_id)
                if meeting_type:
                    meeting_type_name = meeting_type.name
        return organizer, meeting_type_name

    async def sync_event_created(self, meeting) -> CalendarSyncResult:
        organizer, meeting_type_name = await self._load(meeting)
        if organizer is None:
            return CalendarSyncResult(synced=False, reason="organizer not found")

        provider = resolve_provider(organizer.calendar_provider)
        result = await provider.create_event(organizer, meeting, meeting_type_name)
        if not result.synced:
            logger.info(f"Calendar event for meeting {meeting.uid} not synced: {result.reason}")
        return result

    async def sync_event_cancelled(self, meeting) -> CalendarSyncResult:
        organizer, _ = await self._load(meeting)
        if organizer is None:
            return CalendarSyncResult(synced=False, reason="organizer not found")

        provider = resolve_provider(organizer.calendar_provider)
        result = await provider.cancel_event(organizer, meeting)
        if not result.synced:
            logger.info(f"Calendar event for meeting {meeting.uid} not removed: {result.reason}")
        return result
