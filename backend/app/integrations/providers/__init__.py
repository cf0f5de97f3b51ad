from app.integrations.providers.base import CalendarProvider, CalendarSyncResult
from app.integrations.providers.google import GoogleCalendarProvider
from app.integrations.providers.native import NativeCalendarProvider
from app.integrations.providers.registry import available_providers, resolve_provider

__all__ = [
    "CalendarProvider",
    "CalendarSyncResult",
    "GoogleCalendarProvider",
    "NativeCalendarProvider",
    "available_providers",
    "resolve_provider",
]
