from app.models.organizer import Organizer
from app.models.availability import AvailabilityWindow, AvailabilityOverride
from app.models.meeting_type import MeetingType
from app.models.meeting import Meeting

__all__ = ["Organizer", "AvailabilityWindow", "AvailabilityOverride", "MeetingType", "Meeting"]
