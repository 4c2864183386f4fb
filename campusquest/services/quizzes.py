import logging

from sqlalchemy import select

from campusquest.auth.delegation import DelegatedHandle
from campusquest.core.errors import InvalidInput, NotFound, StoreUnavailable
from campusquest.database import STORE_ERRORS
from campusquest.models.quiz import Quiz
from campusquest.schemas.quiz_schema import QuizIn
from campusquest.services.answers import QuestionType, normalize_options, parse_question_type
from campusquest.services.policy import require_moderator

logger = logging.getLogger(__name__)


def clean_quiz_fields(payload: QuizIn) -> dict:
    """Validate a quiz the same way the answer validator will later read it."""
    question_text = (payload.question_text or "").strip()
    qtype = parse_question_type(payload.question_type)
    if not question_text:
        raise InvalidInput("question_text is required")
    if qtype is None:
        raise InvalidInput("Unsupported question_type")

    options = []
    if qtype is QuestionType.MCQ:
        options = normalize_options(payload.options)
        if len(options) < 2:
            raise InvalidInput("At least two options are required for MCQ")

    correct_answer = (payload.correct_answer or "").strip()
    if not correct_answer:
        raise InvalidInput("correct_answer is required")
    if qtype is QuestionType.MCQ and correct_answer not in options:
        raise InvalidInput("correct_answer must match one of the options")

    return {
        "question_text": question_text,
        "question_type": qtype.value,
        "options": options if qtype is QuestionType.MCQ else None,
        "correct_answer": correct_answer,
    }


def _commit(handle: DelegatedHandle, step: str) -> None:
    try:
        handle.db.commit()
    except STORE_ERRORS as e:
        handle.db.rollback()
        logger.error("Quiz %s failed: %s", step, e.__class__.__name__)
        raise StoreUnavailable(step) from e


def _get(handle: DelegatedHandle, quiz_id: int) -> Quiz:
    quiz = handle.db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound(f"Quiz {quiz_id} not found")
    return quiz


def create_quiz(handle: DelegatedHandle, payload: QuizIn) -> Quiz:
    actor_id = require_moderator(handle)
    quiz = Quiz(**clean_quiz_fields(payload), created_by=actor_id)
    handle.db.add(quiz)
    _commit(handle, "quiz create")
    handle.db.refresh(quiz)
    return quiz


def list_quizzes(handle: DelegatedHandle) -> list[Quiz]:
    require_moderator(handle)
    return list(handle.db.execute(select(Quiz).order_by(Quiz.id)).scalars().all())


def update_quiz(handle: DelegatedHandle, quiz_id: int, payload: QuizIn) -> Quiz:
    require_moderator(handle)
    quiz = _get(handle, quiz_id)
    for key, value in clean_quiz_fields(payload).items():
        setattr(quiz, key, value)
    _commit(handle, "quiz update")
    handle.db.refresh(quiz)
    return quiz


def delete_quiz(handle: DelegatedHandle, quiz_id: int) -> None:
    require_moderator(handle)
    handle.db.delete(_get(handle, quiz_id))
    _commit(handle, "quiz delete")
