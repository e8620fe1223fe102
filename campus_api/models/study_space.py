from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .enums import ReservationStatus


class StudySpace(Base):
    __tablename__ = "study_spaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False, default=1)

    reservations = relationship(
        "StudySpaceReservation",
        back_populates="study_space",
        cascade="all, delete-orphan",
    )


class StudySpaceReservation(Base):
    __tablename__ = "study_space_reservations"

    id = Column(Integer, primary_key=True, index=True)
    study_space_id = Column(
        Integer, ForeignKey("study_spaces.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Reservation day, stored as UTC midnight
    date = Column(DateTime, nullable=False)
    status = Column(
        Enum(ReservationStatus), nullable=False, default=ReservationStatus.ACTIVE
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    study_space = relationship("StudySpace", back_populates="reservations")
    user = relationship("User")

    __table_args__ = (Index("idx_reservation_status_date", "status", "date"),)
