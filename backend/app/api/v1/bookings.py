from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AwareDatetime, BaseModel, Field

from app.api.v1.deps import get_orchestrator
from app.models import Meeting
from app.services.booking_orchestrator import Attendee, BookingOrchestrator

router = APIRouter(tags=["bookings"])


class AttendeePayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: Optional[str] = None
    timezone: Optional[str] = None


class BookingRequest(BaseModel):
    organizer_id: str
    meeting_type_id: str
    start_time: AwareDatetime
    end_time: Optional[AwareDatetime] = None
    attendee: AttendeePayload


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class RescheduleRequest(BaseModel):
    start_time: AwareDatetime
    timezone: Optional[str] = None


def meeting_to_dict(meeting: Meeting) -> dict:
    return {
        "uid": meeting.uid,
        "organizer_id": str(meeting.organizer_id),
        "meeting_type_id": str(meeting.meeting_type_id) if meeting.meeting_type_id else None,
        "status": meeting.status,
        "start_time": meeting.start_utc.isoformat(),
        "end_time": meeting.end_utc.isoformat(),
        "attendee": {
            "name": meeting.attendee_name,
            "email": meeting.attendee_email,
            "phone": meeting.attendee_phone,
            "timezone": meeting.attendee_timezone,
        },
        "organizer_timezone": meeting.organizer_timezone,
        "rescheduled_from_uid": meeting.rescheduled_from_uid,
        "cancellation_reason": meeting.cancellation_reason,
    }


@router.post("/bookings", status_code=201)
async def create_booking(
    payload: BookingRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Book a slot. Errors come back as ``{"error", "detail", "retriable"}``."""
    meeting = await orchestrator.book(
        payload.organizer_id,
        payload.meeting_type_id,
        payload.start_time,
        Attendee(**payload.attendee.model_dump()),
        end_time=payload.end_time,
    )
    return meeting_to_dict(meeting)


@router.get("/meetings/{uid}")
async def get_meeting(uid: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    meeting = await orchestrator.get_meeting(uid)
    return meeting_to_dict(meeting)


@router.post("/meetings/{uid}/cancel")
async def cancel_meeting(
    uid: str,
    payload: Optional[CancelRequest] = None,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    reason = payload.reason if payload else None
    meeting = await orchestrator.cancel(uid, reason)
    return meeting_to_dict(meeting)


@router.post("/meetings/{uid}/reschedule")
async def reschedule_meeting(
    uid: str,
    payload: RescheduleRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Returns the new meeting; the old one is cancelled and linked by ``rescheduled_from_uid``."""
    meeting = await orchestrator.reschedule(uid, payload.start_time, attendee_timezone=payload.timezone)
    return meeting_to_dict(meeting)


@router.post("/meetings/{uid}/request-reschedule")
async def request_reschedule(uid: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    meeting = await orchestrator.request_reschedule(uid)
    return meeting_to_dict(meeting)


@router.post("/meetings/{uid}/confirm")
async def confirm_meeting(uid: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    meeting = await orchestrator.confirm(uid)
    return meeting_to_dict(meeting)


@router.post("/meetings/{uid}/complete")
async def complete_meeting(uid: str, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    meeting = await orchestrator.complete(uid)
    return meeting_to_dict(meeting)
