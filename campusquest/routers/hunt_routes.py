from typing import Optional

from fastapi import APIRouter, Depends

from campusquest.auth.delegation import DelegatedHandle, get_handle
from campusquest.models.hunt import UserHunt
from campusquest.routers.quest_routes import completion_response, load_assignment
from campusquest.schemas.assignment_schema import UserHuntOut
from campusquest.schemas.completion_schema import CompletionOut, CompletionRequest
from campusquest.services.completion import AssignmentKind

router = APIRouter(prefix="/user-hunts", tags=["Hunts"])


@router.get("/{user_hunt_id}", response_model=UserHuntOut)
def get_user_hunt(user_hunt_id: int, handle: DelegatedHandle = Depends(get_handle)):
    return load_assignment(handle, UserHunt, user_hunt_id, "Hunt")


@router.post("/{user_hunt_id}/complete", response_model=CompletionOut)
def complete_user_hunt(
    user_hunt_id: int,
    payload: Optional[CompletionRequest] = None,
    handle: DelegatedHandle = Depends(get_handle),
):
    return completion_response(handle, AssignmentKind.HUNT, user_hunt_id, payload)
