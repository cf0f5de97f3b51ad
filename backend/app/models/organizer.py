from sqlalchemy import Column, String, Integer, Boolean, DateTime, Uuid
import uuid
from app.core.database import Base
from app.services.timezones import utcnow

class Organizer(Base):
    __tablename__ = "organizers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)

    # Scheduling policy
    buffer_minutes = Column(Integer, nullable=False, default=15)
    advance_booking_days = Column(Integer, nullable=False, default=90)
    min_advance_hours = Column(Integer, nullable=False, default=3)

    # Calendar integration
    requires_calendar = Column(Boolean, nullable=False, default=False)
    calendar_provider = Column(String, nullable=False, default="native")  # native, google
    google_calendar_id = Column(String, nullable=True)  # e.g., "organizer@company.com"
    google_refresh_token = Column(String, nullable=True)  # Encrypted

    # SMS sender for attendee confirmations
    sms_number = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def calendar_connected(self) -> bool:
        if self.calendar_provider == "google":
            return bool(self.google_calendar_id and self.google_refresh_token)
        return False

    def __repr__(self):
        return f"<Organizer(id={self.id}, name={self.name})>"
