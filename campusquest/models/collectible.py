from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from campusquest.database import Base

class Collectible(Base):
    __tablename__ = "collectibles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserInventory(Base):
    __tablename__ = "user_inventory"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user_data.user_id", ondelete="CASCADE"), nullable=False, index=True)
    collectible_id = Column(Integer, ForeignKey("collectibles.id", ondelete="CASCADE"), nullable=False)
    earned_at = Column(DateTime(timezone=True), nullable=False)

    collectible = relationship("Collectible")

    __table_args__ = (UniqueConstraint("user_id", "collectible_id", name="_user_collectible_uc"),)
