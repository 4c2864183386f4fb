from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from campusquest.core.errors import InvalidAnswerInput

_LINE_SPLIT = re.compile(r"\r?\n")


class QuestionType(str, Enum):
    TEXT = "text"
    MCQ = "mcq"


_TYPE_ALIASES = {
    "text": QuestionType.TEXT,
    "free-text": QuestionType.TEXT,
    "free_text": QuestionType.TEXT,
    "freetext": QuestionType.TEXT,
    "mcq": QuestionType.MCQ,
    "multiple-choice": QuestionType.MCQ,
    "multiple_choice": QuestionType.MCQ,
}


def parse_question_type(raw: Any) -> Optional[QuestionType]:
    if isinstance(raw, QuestionType):
        return raw
    return _TYPE_ALIASES.get(str(raw or "").strip().lower())


def _clean(items) -> list[str]:
    out = []
    for item in items:
        text = "" if item is None else str(item).strip()
        if text:
            out.append(text)
    return out


def normalize_options(raw: Any) -> list[str]:
    """
    Canonical option list for whatever representation the store handed back.

    Accepts a list/tuple, a newline-delimited string, a JSON array string, a
    JSON object string with an "options" key, or a mapping with "options".
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return _clean(raw)
    if isinstance(raw, dict):
        inner = raw.get("options")
        return _clean(inner) if isinstance(inner, (list, tuple)) else []
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text[0] in "[{":
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, (list, dict)):
                return normalize_options(parsed)
        return _clean(_LINE_SPLIT.split(text))
    return []


@dataclass(frozen=True)
class Challenge:
    question_type: QuestionType
    correct_answer: str
    options: list[str] = field(default_factory=list)
    question: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "options", normalize_options(self.options))

    @classmethod
    def build(cls, question_type: Any, correct_answer: Any, options: Any = None, question: Optional[str] = None) -> "Challenge":
        qtype = parse_question_type(question_type)
        if qtype is None:
            raise InvalidAnswerInput(f"Unsupported question type: {question_type!r}")
        return cls(
            question_type=qtype,
            correct_answer="" if correct_answer is None else str(correct_answer),
            options=options if qtype is QuestionType.MCQ else [],
            question=question,
        )

    @classmethod
    def from_quiz(cls, quiz) -> "Challenge":
        return cls.build(quiz.question_type, quiz.correct_answer, quiz.options, quiz.question_text)

    @classmethod
    def from_hunt(cls, hunt) -> "Challenge":
        return cls.build(QuestionType.TEXT, hunt.answer, None, hunt.question)


def is_correct(challenge: Challenge, submitted_answer: Optional[str]) -> bool:
    submitted = (submitted_answer or "").strip()
    expected = challenge.correct_answer.strip()

    if challenge.question_type is QuestionType.TEXT:
        if not submitted or not expected:
            return False
        return submitted.casefold() == expected.casefold()

    if len(challenge.options) < 2:
        raise InvalidAnswerInput("This question is misconfigured: fewer than two options")
    if submitted not in challenge.options:
        raise InvalidAnswerInput("Answer must be one of the listed options")
    return submitted == expected
