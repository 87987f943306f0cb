"""
Event-side tables that certificates point at.

Only the columns a certificate needs to resolve, snapshot and check the
eligibility of its owner are modelled here; registration, evaluation and scheduling workflows live in
their own services.
"""
from sqlalchemy import Column, String, DateTime, Integer, Numeric, Boolean, ForeignKey, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class RegistrationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    ATTENDED = "ATTENDED"


class BlockEnrollmentStatus(str, enum.Enum):
    PENDING = "PENDING"          # Waiting for payment
    ENROLLED = "ENROLLED"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    FAILED = "FAILED"
    WITHDRAWN = "WITHDRAWN"
    CANCELLED = "CANCELLED"


class Event(Base):
    """Event (congress, course, talk) that issues certificates"""
    __tablename__ = "events"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    certificate_hours = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Event {self.title}>"


class EventSession(Base):
    """A single session inside an event"""
    __tablename__ = "event_sessions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    event_id = Column(GUID, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    hours = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<EventSession {self.title}>"


class Registration(Base):
    """Attendee registration to an event"""
    __tablename__ = "registrations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    event_id = Column(GUID, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    attendee_name = Column(String(255), nullable=False)
    attendee_email = Column(String(255), nullable=True)
    status = Column(
        SQLEnum(RegistrationStatus, name="registration_status_enum"),
        default=RegistrationStatus.PENDING,
        nullable=False,
        index=True,
    )
    attended = Column(Boolean, default=False, nullable=False)
    attended_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Registration {self.attendee_email} -> {self.event_id}>"


class Speaker(Base):
    """Speaker profile, shared across events"""
    __tablename__ = "speakers"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    specialty = Column(String(255), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Speaker {self.full_name}>"


class BlockEnrollment(Base):
    """Enrollment of an attendee in an evaluable block (course or workshop)"""
    __tablename__ = "block_enrollments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    event_id = Column(GUID, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    block_name = Column(String(255), nullable=False)
    attendee_name = Column(String(255), nullable=False)
    attendee_email = Column(String(255), nullable=True)
    hours = Column(Integer, default=0, nullable=False)
    final_grade = Column(Numeric(5, 2), nullable=True)
    status = Column(
        SQLEnum(BlockEnrollmentStatus, name="block_enrollment_status_enum"),
        default=BlockEnrollmentStatus.ENROLLED,
        nullable=False,
        index=True,
    )

    def __repr__(self):
        return f"<BlockEnrollment {self.attendee_name} in {self.block_name}>"
