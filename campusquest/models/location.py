from sqlalchemy import Column, DateTime, Float, Integer, String, func
from campusquest.database import Base

class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    radius = Column(Float, nullable=False, default=0)    # geofence radius in meters
    created_at = Column(DateTime(timezone=True), server_default=func.now())
