import logging

from sqlalchemy import select

from campusquest.auth.delegation import DelegatedHandle
from campusquest.models.user import UserData

logger = logging.getLogger(__name__)


def is_moderator(actor_id: str | None, handle: DelegatedHandle | None) -> bool:
    """Whether `actor_id` holds moderator privilege. Any doubt resolves to False."""
    if not actor_id or handle is None:
        return False

    try:
        flag = handle.db.execute(
            select(UserData.is_moderator).where(UserData.user_id == actor_id)
        ).scalar_one_or_none()
    except Exception as e:
        logger.warning("Moderator lookup failed for %s: %s", actor_id, e.__class__.__name__)
        try:
            handle.db.rollback()
        except Exception:
            logger.warning("Rollback after moderator lookup failed for %s", actor_id)
        return False

    if flag is None:
        return False
    # Only a real boolean True counts; anything else is malformed data
    return flag is True
