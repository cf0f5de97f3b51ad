from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class CalendarSyncResult:
    synced: bool
    external_reference: Optional[str] = None
    reason: Optional[str] = None


class CalendarProvider(Protocol):
    """External calendar an organizer's meetings are mirrored to."""

    name: str

    async def create_event(self, organizer, meeting, meeting_type_name: Optional[str] = None) -> CalendarSyncResult:
        ...

    async def cancel_event(self, organizer, meeting) -> CalendarSyncResult:
        ...
