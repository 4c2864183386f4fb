from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from campusquest.database import Base

class Hunt(Base):
    __tablename__ = "hunts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(String, nullable=False)              # free-text answer
    time_limit = Column(Integer, nullable=True)          # minutes from activation, None = open-ended
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    collectible_id = Column(Integer, ForeignKey("collectibles.id", ondelete="SET NULL"), nullable=True)
    points_achievable = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    location = relationship("Location")


class UserHunt(Base):
    __tablename__ = "user_hunts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user_data.user_id", ondelete="CASCADE"), nullable=False, index=True)
    hunt_id = Column(Integer, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    is_complete = Column(Boolean, nullable=False, default=False)
    closes_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    hunt = relationship("Hunt")

    __table_args__ = (UniqueConstraint("user_id", "hunt_id", name="_user_hunt_uc"),)
