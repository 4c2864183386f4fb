# schemas/user_schema.py
from pydantic import BaseModel
from typing import Optional


class ModeratorStatusOut(BaseModel):
    user_id: str
    is_moderator: bool


class UserPatch(BaseModel):
    is_moderator: Optional[bool] = None


class UserResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    is_moderator: bool
    points: int

    class Config:
        from_attributes = True
