from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid, Index
from sqlalchemy.orm import relationship
import uuid
from app.core.database import Base
from app.services.timezones import as_utc, utcnow

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
COMPLETED = "completed"
RESCHEDULE_REQUESTED = "reschedule_requested"

VALID_STATUSES = (PENDING, CONFIRMED, CANCELLED, COMPLETED, RESCHEDULE_REQUESTED)
# Statuses that still hold their time on the organizer's calendar
ACTIVE_STATUSES = (PENDING, CONFIRMED, RESCHEDULE_REQUESTED)
TERMINAL_STATUSES = (CANCELLED, COMPLETED)


def new_meeting_uid() -> str:
    return str(uuid.uuid4())


class Meeting(Base):
    __tablename__ = "meetings"
    __table_args__ = (
        Index("idx_meetings_organizer_status_start", "organizer_id", "status", "start_time"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    uid = Column(String, unique=True, nullable=False, default=new_meeting_uid)
    organizer_id = Column(Uuid, ForeignKey("organizers.id"), nullable=False)
    meeting_type_id = Column(Uuid, ForeignKey("meeting_types.id"), nullable=True)

    # Attendee Info
    attendee_name = Column(String, nullable=False)
    attendee_email = Column(String, nullable=False)
    attendee_phone = Column(String, nullable=True)

    # Time (UTC instants)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    # Display metadata
    attendee_timezone = Column(String, nullable=True)
    organizer_timezone = Column(String, nullable=True)

    # Status
    status = Column(String, nullable=False, default=PENDING)
    rescheduled_from_uid = Column(String, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    organizer = relationship("Organizer", backref="meetings")
    meeting_type = relationship("MeetingType", backref="meetings")

    @property
    def start_utc(self):
        return as_utc(self.start_time)

    @property
    def end_utc(self):
        return as_utc(self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<Meeting(uid={self.uid}, attendee={self.attendee_email}, status={self.status})>"
