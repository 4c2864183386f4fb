from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime

from campusquest.services.answers import normalize_options


class QuizIn(BaseModel):
    question_text: str = Field(..., example="What year was the Great Hall built?")
    question_type: str = Field(..., example="mcq")  # "text" or "mcq"
    options: Optional[Any] = Field(default=None, example=["1922", "1935", "1950"])  # list, newline text or JSON
    correct_answer: str = Field(..., example="1935")


class QuizOut(BaseModel):
    id: int
    question_text: str
    question_type: str
    options: Optional[List[str]] = None
    correct_answer: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("options", mode="before")
    @classmethod
    def _canonical_options(cls, v):
        return normalize_options(v) if v is not None else None

    class Config:
        from_attributes = True
