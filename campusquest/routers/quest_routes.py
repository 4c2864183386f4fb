# routers/quest_routes.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from campusquest.auth.delegation import DelegatedHandle, get_handle
from campusquest.core.errors import NotFound, StoreUnavailable
from campusquest.database import STORE_ERRORS
from campusquest.models.quests import UserQuest
from campusquest.schemas.assignment_schema import UserQuestOut
from campusquest.schemas.completion_schema import CompletionOut, CompletionRequest
from campusquest.services.completion import AssignmentKind, complete_challenge
from campusquest.services.geofence import Position
from campusquest.services.policy import require_self_or_moderator

router = APIRouter(prefix="/user-quests", tags=["Quests"])


def _position(payload: Optional[CompletionRequest]) -> Optional[Position]:
    if payload is None or payload.position is None:
        return None
    return Position(lat=payload.position.lat, lng=payload.position.lng, accuracy=payload.position.accuracy)


def load_assignment(handle: DelegatedHandle, model, assignment_id: int, label: str):
    try:
        assignment = handle.db.get(model, assignment_id)
    except STORE_ERRORS as e:
        handle.db.rollback()
        raise StoreUnavailable("loading assignment") from e
    if not assignment:
        raise NotFound(f"{label} assignment not found")
    require_self_or_moderator(handle, assignment.user_id)
    return assignment


def completion_response(handle: DelegatedHandle, kind: AssignmentKind, assignment_id: int, payload: Optional[CompletionRequest]):
    outcome = complete_challenge(
        handle,
        kind,
        assignment_id,
        position=_position(payload),
        submitted_answer=payload.answer if payload else None,
    )
    body = CompletionOut.from_outcome(outcome)
    return JSONResponse(status_code=outcome.status_code, content=body.model_dump(mode="json"))


@router.get("/{user_quest_id}", response_model=UserQuestOut)
def get_user_quest(user_quest_id: int, handle: DelegatedHandle = Depends(get_handle)):
    return load_assignment(handle, UserQuest, user_quest_id, "Quest")


@router.post("/{user_quest_id}/complete", response_model=CompletionOut)
def complete_user_quest(
    user_quest_id: int,
    payload: Optional[CompletionRequest] = None,
    handle: DelegatedHandle = Depends(get_handle),
):
    return completion_response(handle, AssignmentKind.QUEST, user_quest_id, payload)
