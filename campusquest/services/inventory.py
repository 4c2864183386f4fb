import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from campusquest.auth.delegation import DelegatedHandle
from campusquest.core.errors import NotFound, StoreUnavailable
from campusquest.database import STORE_ERRORS
from campusquest.models.collectible import Collectible, UserInventory
from campusquest.services.policy import require_self_or_moderator

logger = logging.getLogger(__name__)

MAX_INVENTORY_PAGE = 500


def _find(handle: DelegatedHandle, user_id: str, collectible_id: int) -> Optional[UserInventory]:
    return handle.db.execute(
        select(UserInventory).where(
            UserInventory.user_id == user_id,
            UserInventory.collectible_id == collectible_id,
        )
    ).scalar_one_or_none()


def add_or_keep(
    handle: DelegatedHandle,
    user_id: str,
    collectible_id: int,
    earned_at: Optional[datetime] = None,
) -> UserInventory:
    """
    Put a collectible in a user's inventory unless it is already there.

    An existing row is returned untouched, so the first earned_at wins. A
    concurrent insert of the same pair loses on the unique constraint and
    returns the row that won.
    """
    return record_award(handle, user_id, collectible_id, earned_at)[0]


def record_award(
    handle: DelegatedHandle,
    user_id: str,
    collectible_id: int,
    earned_at: Optional[datetime] = None,
) -> tuple[UserInventory, bool]:
    """Same as `add_or_keep`, also telling whether this call inserted the row."""
    db = handle.db
    try:
        existing = _find(handle, user_id, collectible_id)
        if existing:
            return existing, False

        if db.get(Collectible, collectible_id) is None:
            raise NotFound(f"Collectible {collectible_id} not found")

        row = UserInventory(
            user_id=user_id,
            collectible_id=collectible_id,
            earned_at=earned_at or datetime.now(timezone.utc),
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            winner = _find(handle, user_id, collectible_id)
            if winner is None:
                raise
            return winner, False

        db.refresh(row)
        logger.info("Collectible %s added to inventory of %s", collectible_id, user_id)
        return row, True
    except IntegrityError:
        raise
    except STORE_ERRORS as e:
        db.rollback()
        logger.error("Inventory write failed for %s/%s: %s", user_id, collectible_id, e.__class__.__name__)
        raise StoreUnavailable("award") from e


def list_inventory(
    handle: DelegatedHandle,
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[UserInventory]:
    require_self_or_moderator(handle, user_id)

    limit = max(1, min(limit, MAX_INVENTORY_PAGE))
    offset = max(offset, 0)

    stmt = (
        select(UserInventory)
        .options(joinedload(UserInventory.collectible))
        .where(UserInventory.user_id == user_id)
        .order_by(UserInventory.earned_at.desc())
    )
    if start:
        stmt = stmt.where(UserInventory.earned_at >= start)
    if end:
        stmt = stmt.where(UserInventory.earned_at <= end)

    try:
        return list(handle.db.execute(stmt.offset(offset).limit(limit)).scalars().all())
    except STORE_ERRORS as e:
        handle.db.rollback()
        raise StoreUnavailable("inventory listing") from e
