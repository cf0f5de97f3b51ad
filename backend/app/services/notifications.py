"""
Attendee notifications for booking lifecycle events.

Email goes through Resend, SMS through Twilio. Both SDKs are blocking, so
calls run in a worker thread. Messages are plain text; templated HTML email
lives outside this service.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import resend

from app.core.config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from app.services.db_service import DBService
from app.integrations.twilio_client import TwilioClient, twilio_client
from app.services.timezones import as_utc, resolve_timezone

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    async def notify_booking_confirmed(self, meeting) -> None:
        ...

    async def notify_booking_cancelled(self, meeting) -> None:
        ...


def format_meeting_time(meeting) -> str:
    tz, tz_name = resolve_timezone(meeting.attendee_timezone, context=f"meeting {meeting.uid}")
    local = as_utc(meeting.start_time).astimezone(tz)
    return f"{local.strftime('%A %d %b %Y at %I:%M %p')} ({tz_name})"


class NotificationService:
    """Default dispatcher. Channels without credentials are skipped with a log line.

    A notification is retried as a whole when a channel fails, so channels
    that already went out for a meeting event are remembered and not resent.
    """

    def __init__(
        self,
        sms: TwilioClient = twilio_client,
        resend_api_key: Optional[str] = RESEND_API_KEY,
        from_address: str = EMAIL_FROM_ADDRESS,
        session_factory=None,
    ):
        self.sms = sms
        self.resend_api_key = resend_api_key
        self.from_address = from_address
        # Used to look up the organizer's own SMS sender number, if any
        self.session_factory = session_factory
        self._delivered: set[tuple[str, str, str]] = set()

    async def notify_booking_confirmed(self, meeting) -> None:
        when = format_meeting_time(meeting)
        await self._deliver_once(
            ("confirmed", meeting.uid, "email"),
            lambda: self._send_email(
                meeting.attendee_email,
                "Your meeting is confirmed",
                f"Hi {meeting.attendee_name},\n\n"
                f"Your meeting is confirmed for {when}.\n"
                f"Meeting ID: {meeting.uid}\n",
            ),
        )
        if meeting.attendee_phone:
            await self._deliver_once(
                ("confirmed", meeting.uid, "sms"),
                lambda: self._send_sms_for(
                    meeting,
                    f"Hi {meeting.attendee_name}, your meeting is confirmed for {when}. Meeting ID: {meeting.uid}.",
                ),
            )
        self._forget("confirmed", meeting.uid)

    async def notify_booking_cancelled(self, meeting) -> None:
        when = format_meeting_time(meeting)
        reason = f"\nReason: {meeting.cancellation_reason}\n" if meeting.cancellation_reason else ""
        await self._deliver_once(
            ("cancelled", meeting.uid, "email"),
            lambda: self._send_email(
                meeting.attendee_email,
                "Your meeting was cancelled",
                f"Hi {meeting.attendee_name},\n\n"
                f"Your meeting on {when} has been cancelled.{reason}\n"
                f"Meeting ID: {meeting.uid}\n",
            ),
        )
        if meeting.attendee_phone:
            await self._deliver_once(
                ("cancelled", meeting.uid, "sms"),
                lambda: self._send_sms_for(
                    meeting,
                    f"Hi {meeting.attendee_name}, your meeting on {when} has been cancelled.",
                ),
            )
        self._forget("cancelled", meeting.uid)

    async def _deliver_once(self, key: tuple[str, str, str], send: Callable[[], Awaitable[None]]) -> None:
        if key in self._delivered:
            logger.info(f"Skipping {key[2]} for {key[0]} meeting {key[1]}, already sent")
            return
        await send()
        self._delivered.add(key)

    def _forget(self, event: str, uid: str) -> None:
        self._delivered = {key for key in self._delivered if key[:2] != (event, uid)}

    async def _send_sms_for(self, meeting, body: str) -> None:
        await self._send_sms(meeting.attendee_phone, body, await self._sender_number(meeting))

    async def _send_email(self, to: str, subject: str, text: str) -> None:
        if not self.resend_api_key:
            logger.info(f"Email not configured, skipping '{subject}' to {to}")
            return
        resend.api_key = self.resend_api_key
        await asyncio.to_thread(
            resend.Emails.send,
            {
                "from": self.from_address,
                "to": [to],
                "subject": subject,
                "text": text,
            },
        )
        logger.info(f"Sent '{subject}' email to {to}")

    async def _sender_number(self, meeting) -> Optional[str]:
        if self.session_factory is None or meeting.organizer_id is None:
            return None
        async with self.session_factory() as session:
            organizer = await DBService(session).get_organizer(meeting.organizer_id)
        return organizer.sms_number if organizer else None

    async def _send_sms(self, to: str, body: str, from_: Optional[str] = None) -> None:
        sender = from_ or self.sms.phone_number
        if not self.sms.configured or not sender:
            logger.info(f"SMS not configured, skipping message to {to}")
            return
        await asyncio.to_thread(self.sms.send_sms, to=to, message=body, from_=sender)
        logger.info(f"Sent SMS to {to}")
