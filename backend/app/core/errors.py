"""Typed booking errors.

Each error carries a stable ``code`` for API clients, an HTTP status for the
exception handler in ``app.main`` and a ``retriable`` flag telling the caller
whether re-fetching slots and trying again can succeed.
"""

from __future__ import annotations


class BookingError(Exception):
    code = "booking_error"
    status_code = 400
    retriable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    default_message = "Booking failed"

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "detail": self.message,
            "retriable": self.retriable,
        }


class SlotViolatesPolicy(BookingError):
    """Slot breaks min notice, advance window, duration or availability."""

    code = "slot_violates_policy"
    status_code = 422
    default_message = "The requested time does not satisfy the organizer's scheduling rules"


class SlotNoLongerAvailable(BookingError):
    """Another booking took the slot since the candidates were generated."""

    code = "slot_no_longer_available"
    status_code = 409
    retriable = True
    default_message = "This time slot is no longer available. Please select a different time."


class BookingContention(BookingError):
    """The organizer lock could not be acquired in time."""

    code = "booking_contention"
    status_code = 409
    retriable = True
    default_message = "The organizer is busy processing another booking. Please try again."


class OrganizerNotBookable(BookingError):
    code = "organizer_not_bookable"
    status_code = 422
    default_message = "This organizer is not accepting bookings right now"


class MeetingNotFound(BookingError):
    code = "meeting_not_found"
    status_code = 404
    default_message = "Meeting not found"


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = 409
    default_message = "The meeting cannot move to the requested status"


class PersistenceUnavailable(BookingError):
    code = "persistence_unavailable"
    status_code = 503
    default_message = "Failed to save meeting to database"


class InvalidPolicy(ValueError):
    """Scheduling policy values outside their allowed bounds."""
