from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class College(Base):
    __tablename__ = "colleges"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    staff = relationship("User", back_populates="college")
    communities = relationship("Community", back_populates="college")


class Community(Base):
    __tablename__ = "communities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    college_id = Column(
        Integer, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )
    club_leader_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    college = relationship("College", back_populates="communities")
    club_leader = relationship("User", back_populates="led_communities")
    events = relationship("Event", back_populates="community")
