from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_slot_generator
from app.core.database import get_db
from app.core.errors import OrganizerNotBookable
from app.services.db_service import DBService
from app.services.policy import MEETING_DURATION_RANGE, valid_meeting_duration
from app.services.slot_generator import SLOT_GRID_MINUTES, SlotGenerator
from app.services.timezones import is_valid_timezone, resolve_timezone

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])

MAX_RANGE_DAYS = 62


@router.get("/organizers/{organizer_id}/available-slots")
async def get_available_slots(
    organizer_id: str,
    from_date: date = Query(..., alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    duration: Optional[int] = None,
    meeting_type_id: Optional[str] = None,
    tz: Optional[str] = None,
    interval: Optional[int] = Query(None, ge=5, le=480),
    db: AsyncSession = Depends(get_db),
    generator: SlotGenerator = Depends(get_slot_generator),
):
    """
    Bookable slots for an organizer between ``from`` and ``to`` (inclusive),
    read as calendar dates in ``tz``.

    Pass either ``meeting_type_id`` or an explicit ``duration`` in minutes.
    An unknown ``tz`` falls back to UTC and is reported under ``warnings``.
    """
    db_service = DBService(db)
    organizer = await db_service.get_organizer(organizer_id)
    if not organizer:
        raise HTTPException(status_code=404, detail="Organizer not found")
    if not organizer.is_active:
        raise OrganizerNotBookable("Organizer not found or not accepting bookings")

    if meeting_type_id:
        meeting_type = await db_service.get_meeting_type(meeting_type_id)
        if not meeting_type or meeting_type.organizer_id != organizer.id or not meeting_type.is_active:
            raise HTTPException(status_code=404, detail="Meeting type not found")
        duration = meeting_type.duration_minutes
    if duration is None:
        raise HTTPException(status_code=422, detail="Either duration or meeting_type_id is required")
    if not valid_meeting_duration(duration):
        low, high = MEETING_DURATION_RANGE
        raise HTTPException(status_code=422, detail=f"duration must be between {low} and {high} minutes")

    if interval is not None and interval % SLOT_GRID_MINUTES:
        raise HTTPException(status_code=422, detail=f"interval must be a multiple of {SLOT_GRID_MINUTES} minutes")

    to_date = to_date or from_date
    if to_date < from_date:
        raise HTTPException(status_code=422, detail="'to' must not be before 'from'")
    if to_date - from_date > timedelta(days=MAX_RANGE_DAYS):
        raise HTTPException(status_code=422, detail=f"Date range is limited to {MAX_RANGE_DAYS} days")

    requested_tz = tz or organizer.timezone
    _, display_tz = resolve_timezone(requested_tz, context=f"slot request for {organizer_id}")
    warnings = []
    if requested_tz and not is_valid_timezone(requested_tz):
        warnings.append(f"Unknown timezone '{requested_tz}', showing times in UTC")
    slots = await generator.generate_slots(
        organizer_id,
        duration,
        (from_date, to_date),
        requester_timezone=display_tz,
        interval_minutes=interval,
    )

    return {
        "organizer_id": str(organizer.id),
        "timezone": display_tz,
        "duration_minutes": duration,
        "slots": [slot.to_dict() for slot in slots],
        "warnings": warnings,
    }
