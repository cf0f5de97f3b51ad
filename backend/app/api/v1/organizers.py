from __future__ import annotations

import logging
import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.integrations.google_calendar.oauth import google_oauth
from app.integrations.providers import available_providers
from app.models import Organizer
from app.services.db_service import DBService
from app.services.policy import (
    ADVANCE_BOOKING_DAYS_RANGE,
    BUFFER_MINUTES_RANGE,
    DEFAULT_ADVANCE_BOOKING_DAYS,
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_MIN_ADVANCE_HOURS,
    MEETING_DURATION_RANGE,
    MIN_ADVANCE_HOURS_RANGE,
)
from app.services.timezones import is_valid_timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizers", tags=["organizers"])


class PolicyPayload(BaseModel):
    buffer_minutes: int = Field(DEFAULT_BUFFER_MINUTES, ge=BUFFER_MINUTES_RANGE[0], le=BUFFER_MINUTES_RANGE[1])
    advance_booking_days: int = Field(
        DEFAULT_ADVANCE_BOOKING_DAYS, ge=ADVANCE_BOOKING_DAYS_RANGE[0], le=ADVANCE_BOOKING_DAYS_RANGE[1]
    )
    min_advance_hours: int = Field(
        DEFAULT_MIN_ADVANCE_HOURS, ge=MIN_ADVANCE_HOURS_RANGE[0], le=MIN_ADVANCE_HOURS_RANGE[1]
    )


class OrganizerPayload(PolicyPayload):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    timezone: str = "UTC"
    requires_calendar: bool = False
    sms_number: Optional[str] = None
    is_active: bool = True


class WindowItem(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Monday
    start_time: dt.time
    end_time: dt.time
    is_available: bool = True

    @model_validator(mode="after")
    def check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityPayload(BaseModel):
    timezone: Optional[str] = None
    windows: list[WindowItem] = Field(default_factory=list)


class OverridePayload(BaseModel):
    date: dt.date
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    is_available: bool = False
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.is_available and self.start_time is None:
            raise ValueError("an available override needs start_time and end_time")
        return self


class MeetingTypePayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    duration_minutes: int = Field(..., ge=MEETING_DURATION_RANGE[0], le=MEETING_DURATION_RANGE[1])
    requires_calendar: bool = False
    video_provider: Optional[str] = None
    is_active: bool = True


class CalendarPayload(BaseModel):
    provider: str = "native"
    google_calendar_id: Optional[str] = None
    refresh_token: Optional[str] = None


def _check_timezone(name: str) -> None:
    if not is_valid_timezone(name):
        raise HTTPException(status_code=422, detail=f"Unknown timezone '{name}'")


def organizer_to_dict(organizer: Organizer) -> dict:
    return {
        "id": str(organizer.id),
        "name": organizer.name,
        "email": organizer.email,
        "timezone": organizer.timezone,
        "is_active": organizer.is_active,
        "buffer_minutes": organizer.buffer_minutes,
        "advance_booking_days": organizer.advance_booking_days,
        "min_advance_hours": organizer.min_advance_hours,
        "requires_calendar": organizer.requires_calendar,
        "calendar_provider": organizer.calendar_provider,
        "calendar_connected": organizer.calendar_connected,
    }


async def _get_organizer_or_404(db_service: DBService, organizer_id: str) -> Organizer:
    organizer = await db_service.get_organizer(organizer_id)
    if not organizer:
        raise HTTPException(status_code=404, detail="Organizer not found")
    return organizer


@router.post("", status_code=201)
async def create_organizer(payload: OrganizerPayload, db: AsyncSession = Depends(get_db)):
    """Create a bookable organizer with its scheduling policy."""
    _check_timezone(payload.timezone)
    organizer = await DBService(db).create_organizer(payload.model_dump())
    logger.info(f"Created organizer {organizer.id}")
    return organizer_to_dict(organizer)


@router.get("/{organizer_id}")
async def get_organizer(organizer_id: str, db: AsyncSession = Depends(get_db)):
    organizer = await _get_organizer_or_404(DBService(db), organizer_id)
    return organizer_to_dict(organizer)


@router.put("/{organizer_id}/policy")
async def update_policy(organizer_id: str, payload: PolicyPayload, db: AsyncSession = Depends(get_db)):
    db_service = DBService(db)
    await _get_organizer_or_404(db_service, organizer_id)
    organizer = await db_service.update_organizer(organizer_id, payload.model_dump())
    return organizer_to_dict(organizer)


@router.put("/{organizer_id}/availability")
async def replace_availability(
    organizer_id: str,
    payload: AvailabilityPayload,
    db: AsyncSession = Depends(get_db),
):
    """Replace the organizer's weekly windows (and optionally its timezone)."""
    db_service = DBService(db)
    organizer = await _get_organizer_or_404(db_service, organizer_id)

    if payload.timezone:
        _check_timezone(payload.timezone)
        organizer.timezone = payload.timezone

    rows = await db_service.replace_weekly_availability(
        organizer.id, [window.model_dump() for window in payload.windows]
    )
    return {
        "status": "ok",
        "organizer_id": str(organizer.id),
        "timezone": organizer.timezone,
        "windows_created": len(rows),
    }


@router.post("/{organizer_id}/overrides", status_code=201)
async def add_override(organizer_id: str, payload: OverridePayload, db: AsyncSession = Depends(get_db)):
    db_service = DBService(db)
    organizer = await _get_organizer_or_404(db_service, organizer_id)
    override = await db_service.add_override(organizer.id, payload.model_dump())
    return {
        "id": str(override.id),
        "date": override.date.isoformat(),
        "is_available": override.is_available,
    }


@router.post("/{organizer_id}/meeting-types", status_code=201)
async def create_meeting_type(
    organizer_id: str,
    payload: MeetingTypePayload,
    db: AsyncSession = Depends(get_db),
):
    db_service = DBService(db)
    organizer = await _get_organizer_or_404(db_service, organizer_id)
    meeting_type = await db_service.create_meeting_type(organizer.id, payload.model_dump())
    return {
        "id": str(meeting_type.id),
        "name": meeting_type.name,
        "duration_minutes": meeting_type.duration_minutes,
        "requires_calendar": meeting_type.requires_calendar,
        "is_active": meeting_type.is_active,
    }


@router.put("/{organizer_id}/calendar")
async def connect_calendar(organizer_id: str, payload: CalendarPayload, db: AsyncSession = Depends(get_db)):
    """Point the organizer at a calendar provider. Refresh tokens are stored encrypted."""
    if payload.provider not in available_providers():
        raise HTTPException(status_code=422, detail=f"Unknown calendar provider '{payload.provider}'")

    db_service = DBService(db)
    await _get_organizer_or_404(db_service, organizer_id)

    updates = {"calendar_provider": payload.provider}
    if payload.provider == "google":
        if not payload.google_calendar_id or not payload.refresh_token:
            raise HTTPException(status_code=422, detail="google_calendar_id and refresh_token are required")
        if not google_oauth.can_store_tokens():
            raise HTTPException(status_code=503, detail="Calendar token storage is not configured (ENCRYPTION_KEY)")
        updates["google_calendar_id"] = payload.google_calendar_id
        updates["google_refresh_token"] = google_oauth.encrypt_token(payload.refresh_token)
    else:
        updates["google_calendar_id"] = None
        updates["google_refresh_token"] = None

    organizer = await db_service.update_organizer(organizer_id, updates)
    logger.info(f"Organizer {organizer.id} calendar provider set to {payload.provider}")
    return organizer_to_dict(organizer)
