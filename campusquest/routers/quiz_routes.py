from typing import List

from fastapi import APIRouter, Depends, Response, status

from campusquest.auth.delegation import DelegatedHandle, get_handle
from campusquest.schemas.quiz_schema import QuizIn, QuizOut
from campusquest.services import quizzes

router = APIRouter(prefix="/quizzes", tags=["Quizzes"])


@router.post("/", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
def create_quiz(payload: QuizIn, handle: DelegatedHandle = Depends(get_handle)):
    return quizzes.create_quiz(handle, payload)


@router.get("/", response_model=List[QuizOut])
def list_quizzes(handle: DelegatedHandle = Depends(get_handle)):
    return quizzes.list_quizzes(handle)


@router.put("/{quiz_id}", response_model=QuizOut)
def update_quiz(quiz_id: int, payload: QuizIn, handle: DelegatedHandle = Depends(get_handle)):
    return quizzes.update_quiz(handle, quiz_id, payload)


@router.delete("/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz(quiz_id: int, handle: DelegatedHandle = Depends(get_handle)):
    quizzes.delete_quiz(handle, quiz_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
