from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from campusquest.auth.delegation import DelegatedHandle, get_handle
from campusquest.core.errors import InvalidInput, NotFound, StoreUnavailable
from campusquest.database import STORE_ERRORS
from campusquest.models.user import UserData
from campusquest.schemas.inventory_schema import AwardRequest, InventoryItemOut
from campusquest.schemas.user_schema import ModeratorStatusOut, UserPatch, UserResponse
from campusquest.services import inventory
from campusquest.services.moderation import is_moderator
from campusquest.services.policy import require_moderator, require_self_or_moderator

router = APIRouter(prefix="/users", tags=["User"])


@router.get("/me/moderator", response_model=ModeratorStatusOut)
def get_my_moderator_status(handle: DelegatedHandle = Depends(get_handle)):
    actor_id = handle.actor_id()
    return ModeratorStatusOut(user_id=actor_id, is_moderator=is_moderator(actor_id, handle))


@router.patch("/{user_id}", response_model=UserResponse)
def patch_user(user_id: str, payload: UserPatch, handle: DelegatedHandle = Depends(get_handle)):
    require_moderator(handle)
    if payload.is_moderator is None:
        raise InvalidInput("No valid fields to update")

    user = handle.db.get(UserData, user_id)
    if not user:
        raise NotFound("User not found")

    user.is_moderator = payload.is_moderator
    try:
        handle.db.commit()
    except STORE_ERRORS as e:
        handle.db.rollback()
        raise StoreUnavailable("user update") from e
    handle.db.refresh(user)
    return user


@router.get("/{user_id}/inventory", response_model=List[InventoryItemOut])
def get_inventory(
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=inventory.MAX_INVENTORY_PAGE),
    offset: int = Query(0, ge=0),
    handle: DelegatedHandle = Depends(get_handle),
):
    return inventory.list_inventory(handle, user_id, start=start, end=end, limit=limit, offset=offset)


@router.post("/{user_id}/inventory", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
def award_collectible(
    user_id: str,
    payload: AwardRequest,
    response: Response,
    handle: DelegatedHandle = Depends(get_handle),
):
    require_self_or_moderator(handle, user_id)
    row, created = inventory.record_award(handle, user_id, payload.collectible_id, payload.earned_at)
    if not created:
        # Already owned: kept as is
        response.status_code = status.HTTP_200_OK
    return row
