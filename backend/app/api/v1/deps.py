from fastapi import Request

from app.services.booking_orchestrator import BookingOrchestrator
from app.services.slot_generator import SlotGenerator


def get_orchestrator(request: Request) -> BookingOrchestrator:
    return request.app.state.orchestrator


def get_slot_generator(request: Request) -> SlotGenerator:
    return request.app.state.slot_generator
