from pydantic import BaseModel, Field
from typing import List, Optional


class PositionIn(BaseModel):
    lat: float = Field(..., example=-26.1929)
    lng: float = Field(..., example=28.0305)
    accuracy: Optional[float] = None  # meters, as reported by the device


class CompletionRequest(BaseModel):
    position: Optional[PositionIn] = None
    answer: Optional[str] = Field(default=None, example="42")


class SideEffectWarningOut(BaseModel):
    step: str
    detail: str


class CompletionOut(BaseModel):
    status: str                      # rejected | completed | completed_with_warnings | already_completed
    kind: str
    assignment_id: int
    reason: Optional[str] = None
    category: Optional[str] = None
    message: Optional[str] = None
    warnings: List[SideEffectWarningOut] = []
    points_awarded: int = 0
    activated_hunt_id: Optional[int] = None
    awarded_collectible_id: Optional[int] = None

    @classmethod
    def from_outcome(cls, outcome) -> "CompletionOut":
        return cls(
            status=outcome.status.value,
            kind=outcome.kind.value,
            assignment_id=outcome.assignment_id,
            reason=outcome.reason,
            category=outcome.category,
            message=outcome.message,
            warnings=[SideEffectWarningOut(step=w.step.value, detail=w.detail) for w in outcome.warnings],
            points_awarded=outcome.points_awarded,
            activated_hunt_id=outcome.activated_hunt_id,
            awarded_collectible_id=outcome.awarded_collectible_id,
        )
