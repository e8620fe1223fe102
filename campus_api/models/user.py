from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    supabase_id = Column(String, unique=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    is_active = Column(Boolean, default=True)

    # Faculty leaders and deans of faculty hold their office for one college
    college_id = Column(
        Integer, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    college = relationship("College", back_populates="staff")
    led_communities = relationship("Community", back_populates="club_leader")
    created_events = relationship(
        "Event", back_populates="creator", foreign_keys="Event.created_by"
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @classmethod
    def create_from_supabase(cls, supabase_user, db_session):
        """Create a student account for a Supabase identity seen for the first time"""
        metadata = getattr(supabase_user, "user_metadata", None) or {}
        user = cls(
            supabase_id=supabase_user.id,
            email=supabase_user.email,
            name=metadata.get("name") or supabase_user.email.split("@")[0],
            role=UserRole.STUDENT,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
