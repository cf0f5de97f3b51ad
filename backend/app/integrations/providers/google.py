from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from app.integrations.google_calendar.models import CalendarEvent, google_event_id
from app.integrations.google_calendar.oauth import GoogleCalendarOAuth, google_oauth
from app.integrations.providers.base import CalendarSyncResult

logger = logging.getLogger(__name__)

EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


class GoogleCalendarError(Exception):
    """Google Calendar API returned an unexpected status."""


class GoogleCalendarProvider:
    """Mirror meetings into the organizer's Google Calendar.

    Event ids are derived from meeting uids, so a retried create that hits
    409 means the event already exists and counts as synced.
    """

    name = "google"

    def __init__(self, oauth: GoogleCalendarOAuth = google_oauth):
        self.oauth = oauth

    async def _access_token(self, organizer) -> str:
        refresh_token = self.oauth.decrypt_token(organizer.google_refresh_token)
        access_token, _ = await self.oauth.refresh_access_token(refresh_token)
        return access_token

    def _events_url(self, organizer) -> str:
        return EVENTS_URL.format(calendar_id=quote(organizer.google_calendar_id or "primary", safe=""))

    async def create_event(self, organizer, meeting, meeting_type_name: Optional[str] = None) -> CalendarSyncResult:
        if not organizer.calendar_connected:
            return CalendarSyncResult(synced=False, reason="calendar not connected")

        event = CalendarEvent.from_meeting(meeting, meeting_type_name)
        token = await self._access_token(organizer)

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self._events_url(organizer),
                json=event.to_google_event(),
                params={"sendUpdates": "all"},
                headers={"Authorization": f"Bearer {token}"},
            ) as resp:
                if resp.status == 409:
                    return CalendarSyncResult(synced=True, external_reference=event.event_id)
                if resp.status not in (200, 201):
                    error_text = await resp.text()
                    raise GoogleCalendarError(f"Event create failed ({resp.status}): {error_text}")

        logger.info(f"Created Google Calendar event {event.event_id} for meeting {meeting.uid}")
        return CalendarSyncResult(synced=True, external_reference=event.event_id)

    async def cancel_event(self, organizer, meeting) -> CalendarSyncResult:
        if not organizer.calendar_connected:
            return CalendarSyncResult(synced=False, reason="calendar not connected")

        event_id = google_event_id(meeting.uid)
        token = await self._access_token(organizer)

        async with aiohttp.ClientSession() as session:
            async with session.delete(
                f"{self._events_url(organizer)}/{event_id}",
                params={"sendUpdates": "all"},
                headers={"Authorization": f"Bearer {token}"},
            ) as resp:
                # 404/410: never created or already gone
                if resp.status not in (200, 204, 404, 410):
                    error_text = await resp.text()
                    raise GoogleCalendarError(f"Event delete failed ({resp.status}): {error_text}")

        logger.info(f"Removed Google Calendar event {event_id} for meeting {meeting.uid}")
        return CalendarSyncResult(synced=True, external_reference=event_id)
