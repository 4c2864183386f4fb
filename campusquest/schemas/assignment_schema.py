from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class UserQuestOut(BaseModel):
    id: int
    user_id: str
    quest_id: int
    is_complete: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserHuntOut(BaseModel):
    id: int
    user_id: str
    hunt_id: int
    is_active: bool
    is_complete: bool
    closes_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
