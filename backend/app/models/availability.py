from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, Time, Uuid, String
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base
from app.services.timezones import utcnow


class AvailabilityWindow(Base):
    """Weekly recurring window. ``is_available=False`` rows are blocked periods (breaks)."""

    __tablename__ = "availability_windows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id = Column(Uuid, ForeignKey("organizers.id"), nullable=False)

    day_of_week = Column(Integer, nullable=False)  # 0 = Monday ... 6 = Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    organizer = relationship("Organizer", backref="availability_windows")

    def __repr__(self):
        return (
            f"<AvailabilityWindow(day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time}, available={self.is_available})>"
        )


class AvailabilityOverride(Base):
    """Date-specific exception to the weekly schedule."""

    __tablename__ = "availability_overrides"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id = Column(Uuid, ForeignKey("organizers.id"), nullable=False)

    date = Column(Date, nullable=False)
    # Both null on an unavailable override closes the whole day
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    is_available = Column(Boolean, nullable=False, default=False)
    reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    organizer = relationship("Organizer", backref="availability_overrides")

    def __repr__(self):
        return f"<AvailabilityOverride(date={self.date}, available={self.is_available})>"
