from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base
from app.services.timezones import utcnow


class MeetingType(Base):
    __tablename__ = "meeting_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id = Column(Uuid, ForeignKey("organizers.id"), nullable=False)

    name = Column(String, nullable=False)  # display only, identity is the id
    duration_minutes = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)

    # Integrations
    requires_calendar = Column(Boolean, nullable=False, default=False)
    video_provider = Column(String, nullable=True)  # google_meet, teams, ...

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    organizer = relationship("Organizer", backref="meeting_types")

    def __repr__(self):
        return f"<MeetingType(id={self.id}, name={self.name}, duration={self.duration_minutes})>"
