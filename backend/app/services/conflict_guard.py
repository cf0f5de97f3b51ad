from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, TypeVar

from app.core.config import BOOKING_LOCK_TIMEOUT_SECONDS
from app.core.errors import BookingContention

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _OrganizerLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ConflictGuard:
    """Per-organizer mutual exclusion for the booking commit step.

    One ``asyncio.Lock`` per organizer, created on first use and dropped as
    soon as nobody holds or waits for it. Unrelated organizers never contend.

    The locks live in this process only. Running several app instances needs
    the ``FOR UPDATE`` conflict query (see ``DBService.load_active_meetings``)
    or a shared lock service to keep the overlap invariant.
    """

    def __init__(self, timeout_seconds: float = BOOKING_LOCK_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[str, _OrganizerLock] = {}

    async def with_organizer_lock(self, organizer_id, fn: Callable[[], Awaitable[T]]) -> T:
        key = str(organizer_id)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _OrganizerLock()
        entry.users += 1

        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Booking lock for organizer {key} not acquired within {self.timeout_seconds:.1f}s"
                )
                raise BookingContention()

            try:
                return await fn()
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    def is_locked(self, organizer_id) -> bool:
        entry = self._locks.get(str(organizer_id))
        return bool(entry and entry.lock.locked())

    @property
    def tracked_organizers(self) -> int:
        return len(self._locks)
