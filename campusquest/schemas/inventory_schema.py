from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CollectibleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class InventoryItemOut(BaseModel):
    collectible_id: int
    earned_at: datetime
    collectible: Optional[CollectibleOut] = None

    class Config:
        from_attributes = True


class AwardRequest(BaseModel):
    collectible_id: int
    earned_at: Optional[datetime] = None
