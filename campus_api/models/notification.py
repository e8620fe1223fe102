from sqlalchemy import (
    Index,
    Column,
    Integer,
    DateTime,
    ForeignKey,
    Boolean,
    Text,
    Enum,
)
from sqlalchemy.orm import relationship
from ..database import Base
from ..utils.date_helpers import DateHelpers
from .enums import ApprovalStage, NotificationType


class Notification(Base):
    """
    Append-only fan-out record. Rows are created by NotificationService.emit
    and afterwards only the read flag changes.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    # Stage whose revision exchange this notice belongs to, if any
    stage = Column(Enum(ApprovalStage), nullable=True)

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=True
    )

    # Set in Python so it compares exactly with Event.last_transition_at
    created_at = Column(DateTime, nullable=False, default=DateHelpers.utc_now)
    read_at = Column(DateTime)

    # Relationships
    user = relationship("User", back_populates="notifications")
    event = relationship("Event")

    __table_args__ = (
        Index("idx_notification_user_unread", "user_id", "read", "created_at"),
        Index("idx_notification_dedup", "event_id", "type", "user_id"),
    )
