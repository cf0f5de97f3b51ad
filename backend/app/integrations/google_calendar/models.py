"""Calendar event data models"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.services.timezones import as_utc


@dataclass
class CalendarEvent:
    """Represents a booked meeting on the organizer's calendar"""

    event_id: str                   # Derived from the meeting uid
    title: str                      # "Intro call - Jane Smith"
    description: str
    start_time: datetime            # UTC instant
    end_time: datetime              # UTC instant
    timezone: str                   # Organizer's display timezone
    attendee_email: Optional[str] = None  # To send invitations

    @classmethod
    def from_meeting(cls, meeting, meeting_type_name: Optional[str] = None) -> "CalendarEvent":
        label = meeting_type_name or "Meeting"
        return cls(
            event_id=google_event_id(meeting.uid),
            title=f"{label} - {meeting.attendee_name}",
            description=f"Booked by {meeting.attendee_name} <{meeting.attendee_email}>\nMeeting ID: {meeting.uid}",
            start_time=as_utc(meeting.start_time),
            end_time=as_utc(meeting.end_time),
            timezone=meeting.organizer_timezone or "UTC",
            attendee_email=meeting.attendee_email,
        )

    def to_google_event(self) -> dict:
        """Convert to Google Calendar API event format"""
        return {
            "id": self.event_id,
            "summary": self.title,
            "description": self.description,
            "start": {
                "dateTime": self.start_time.isoformat(),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": self.end_time.isoformat(),
                "timeZone": self.timezone,
            },
            "attendees": [
                {"email": self.attendee_email}
            ] if self.attendee_email else [],
        }


def google_event_id(meeting_uid: str) -> str:
    # Google event ids allow base32hex characters only; a uuid's hex digits qualify
    return meeting_uid.replace("-", "").lower()
