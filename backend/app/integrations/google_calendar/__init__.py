"""Google Calendar Integration"""

from .oauth import GoogleCalendarOAuth, google_oauth
from .models import CalendarEvent

__all__ = ["GoogleCalendarOAuth", "google_oauth", "CalendarEvent"]
