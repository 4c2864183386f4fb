# models/user.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from campusquest.database import Base

class UserData(Base):
    __tablename__ = "user_data"

    user_id = Column(String, primary_key=True, index=True)             # subject id from the identity provider
    email = Column(String, nullable=True)
    is_moderator = Column(Boolean, nullable=False, default=False)      # only moderators may flip this
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
