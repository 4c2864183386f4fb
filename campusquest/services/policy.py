from enum import Enum

from campusquest.auth.delegation import DelegatedHandle
from campusquest.core.errors import Forbidden
from campusquest.services.moderation import is_moderator


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def authorize(actor_id: str | None, resource_owner_id: str | None, is_moderator: bool) -> Decision:
    if is_moderator is True:
        return Decision.ALLOW
    if actor_id and resource_owner_id is not None and actor_id == resource_owner_id:
        return Decision.ALLOW
    return Decision.DENY


def authorize_mutation(handle: DelegatedHandle, resource_owner_id: str | None) -> Decision:
    """Self-or-moderator check for the caller behind `handle`.

    The moderator flag is only looked up when the caller is not the owner.
    """
    actor_id = handle.actor_id()
    if authorize(actor_id, resource_owner_id, False) is Decision.ALLOW:
        return Decision.ALLOW
    return authorize(actor_id, resource_owner_id, is_moderator(actor_id, handle))


def require_self_or_moderator(handle: DelegatedHandle, resource_owner_id: str | None) -> str:
    if authorize_mutation(handle, resource_owner_id) is Decision.DENY:
        raise Forbidden()
    return handle.actor_id()


def require_moderator(handle: DelegatedHandle) -> str:
    actor_id = handle.actor_id()
    if not is_moderator(actor_id, handle):
        raise Forbidden("Moderator privilege required")
    return actor_id
