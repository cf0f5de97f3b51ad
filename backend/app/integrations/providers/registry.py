from __future__ import annotations

import logging

from app.integrations.providers.base import CalendarProvider
from app.integrations.providers.google import GoogleCalendarProvider
from app.integrations.providers.native import NativeCalendarProvider

logger = logging.getLogger(__name__)

# Resolved once at import; lookups never build providers on the fly
_PROVIDERS: dict[str, CalendarProvider] = {
    "native": NativeCalendarProvider(),
    "google": GoogleCalendarProvider(),
}


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def resolve_provider(name: str | None) -> CalendarProvider:
    provider_name = name or "native"
    provider = _PROVIDERS.get(provider_name)
    if provider is None:
        logger.warning(f"Unknown calendar provider '{provider_name}', using native")
        return _PROVIDERS["native"]
    return provider
