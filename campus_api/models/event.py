from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from ..utils.date_helpers import DateHelpers
from .enums import EventStatus, ApprovalDecision


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    location = Column(String)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime)
    capacity = Column(Integer)

    community_id = Column(
        Integer, ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    college_id = Column(
        Integer, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )
    created_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Workflow state; only ApprovalService writes these
    status = Column(
        Enum(EventStatus),
        nullable=False,
        default=EventStatus.PENDING_FACULTY_APPROVAL,
        index=True,
    )
    version = Column(Integer, nullable=False, default=1)
    last_transition_at = Column(DateTime, nullable=False, default=DateHelpers.utc_now)

    # Approval markers (audit trail alongside status)
    faculty_leader_approval = Column(
        Enum(ApprovalDecision), nullable=False, default=ApprovalDecision.PENDING
    )
    faculty_leader_approved_by = Column(Integer, ForeignKey("users.id"))
    faculty_leader_approved_at = Column(DateTime)

    dean_of_faculty_approval = Column(
        Enum(ApprovalDecision), nullable=False, default=ApprovalDecision.PENDING
    )
    dean_of_faculty_approved_by = Column(Integer, ForeignKey("users.id"))
    dean_of_faculty_approved_at = Column(DateTime)

    deanship_approval = Column(
        Enum(ApprovalDecision), nullable=False, default=ApprovalDecision.PENDING
    )
    deanship_approved_by = Column(Integer, ForeignKey("users.id"))
    deanship_approved_at = Column(DateTime)

    # Revision exchanges, one pair per revision point
    dean_of_faculty_revision_message = Column(Text)
    faculty_leader_revision_response = Column(Text)
    deanship_revision_message = Column(Text)
    dean_of_faculty_revision_response = Column(Text)

    rejection_reason = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    community = relationship("Community", back_populates="events")
    college = relationship("College")
    creator = relationship(
        "User", back_populates="created_events", foreign_keys=[created_by]
    )
    registrations = relationship(
        "EventRegistration", back_populates="event", cascade="all, delete-orphan"
    )
    saved_by = relationship(
        "SavedEvent", back_populates="event", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_event_status_start", "status", "start_date"),)


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="registrations")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_registration_user_event"),
    )


class SavedEvent(Base):
    __tablename__ = "saved_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="saved_by")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_saved_user_event"),
    )
