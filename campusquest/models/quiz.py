from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func
from campusquest.database import Base

class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False)   # "text" or "mcq"
    options = Column(JSON, nullable=True)                # list, newline text or {"options": [...]}
    correct_answer = Column(String, nullable=False)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
