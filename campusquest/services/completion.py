"""
Completion of quest and hunt assignments.

A completion attempt runs strictly in order:

    authorize -> (hunt closing time) -> location gate -> answer gate
      -> completion write -> chain activation -> collectible award

Gates reject before anything is written. The completion write is the durable
fact; the follow-on effects after it are best-effort, each committed on its own
and reported back as warnings when they fail.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from campusquest.auth.delegation import DelegatedHandle
from campusquest.core.errors import (
    GATE_ERRORS,
    CampusQuestError,
    ChallengeClosed,
    Forbidden,
    IncorrectAnswer,
    NotFound,
    OutOfRange,
    StoreUnavailable,
)
from campusquest.database import STORE_ERRORS
from campusquest.models.hunt import Hunt, UserHunt
from campusquest.models.quests import Quest, UserQuest
from campusquest.models.user import UserData
from campusquest.services import inventory
from campusquest.services.answers import Challenge, is_correct
from campusquest.services.geofence import Position, within_radius
from campusquest.services.policy import Decision, authorize_mutation

logger = logging.getLogger(__name__)


class AssignmentKind(str, Enum):
    QUEST = "quest"
    HUNT = "hunt"


class CompletionStatus(str, Enum):
    REJECTED = "rejected"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    ALREADY_COMPLETED = "already_completed"


class SideEffectStep(str, Enum):
    CHAIN_ACTIVATION = "chain_activation"
    AWARD = "award"


@dataclass
class SideEffectFailed:
    step: SideEffectStep
    detail: str


@dataclass
class CompletionOutcome:
    status: CompletionStatus
    kind: AssignmentKind
    assignment_id: int
    reason: Optional[str] = None
    category: Optional[str] = None
    message: Optional[str] = None
    status_code: int = 200
    warnings: list[SideEffectFailed] = field(default_factory=list)
    points_awarded: int = 0
    activated_hunt_id: Optional[int] = None
    awarded_collectible_id: Optional[int] = None

    @classmethod
    def rejected(cls, kind: AssignmentKind, assignment_id: int, error: CampusQuestError) -> "CompletionOutcome":
        return cls(
            status=CompletionStatus.REJECTED,
            kind=kind,
            assignment_id=assignment_id,
            reason=error.reason,
            category=error.category,
            message=error.detail,
            status_code=error.status_code,
        )


@dataclass
class _Target:
    """Everything a completion attempt needs, read once per attempt."""

    kind: AssignmentKind
    assignment: Any
    owner_id: str
    location: Any = None
    challenge_loader: Optional[Callable[[], Optional[Challenge]]] = None
    points: int = 0
    unlocks_hunt_id: Optional[int] = None
    collectible_id: Optional[int] = None
    closes_at: Optional[datetime] = None
    is_active: bool = True


@dataclass
class _SideEffect:
    step: SideEffectStep
    run: Callable[[], None]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _load_target(handle: DelegatedHandle, kind: AssignmentKind, assignment_id: int) -> _Target:
    db = handle.db
    try:
        if kind is AssignmentKind.QUEST:
            user_quest = db.execute(
                select(UserQuest)
                .options(joinedload(UserQuest.quest).joinedload(Quest.location), joinedload(UserQuest.quest).joinedload(Quest.quiz))
                .where(UserQuest.id == assignment_id)
                .execution_options(populate_existing=True)
            ).unique().scalar_one_or_none()
            if user_quest is None or user_quest.quest is None:
                raise NotFound(f"Quest assignment {assignment_id} not found")
            quest = user_quest.quest
            return _Target(
                kind=kind,
                assignment=user_quest,
                owner_id=user_quest.user_id,
                location=quest.location,
                challenge_loader=(lambda: Challenge.from_quiz(quest.quiz)) if quest.quiz is not None else None,
                points=quest.points_achievable or 0,
                unlocks_hunt_id=quest.hunt_id,
                collectible_id=quest.collectible_id,
                is_active=bool(quest.is_active),
            )

        user_hunt = db.execute(
            select(UserHunt)
            .options(joinedload(UserHunt.hunt).joinedload(Hunt.location))
            .where(UserHunt.id == assignment_id)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if user_hunt is None or user_hunt.hunt is None:
            raise NotFound(f"Hunt assignment {assignment_id} not found")
        hunt = user_hunt.hunt
        return _Target(
            kind=kind,
            assignment=user_hunt,
            owner_id=user_hunt.user_id,
            location=hunt.location,
            challenge_loader=(lambda: Challenge.from_hunt(hunt)) if (hunt.question or "").strip() else None,
            points=hunt.points_achievable or 0,
            collectible_id=hunt.collectible_id,
            closes_at=_as_utc(user_hunt.closes_at),
            is_active=bool(user_hunt.is_active),
        )
    except STORE_ERRORS as e:
        db.rollback()
        logger.error("Loading %s assignment %s failed: %s", kind.value, assignment_id, e.__class__.__name__)
        raise StoreUnavailable("loading assignment") from e


def _check_gates(target: _Target, position: Optional[Position], submitted_answer: Optional[str], now: datetime) -> None:
    if target.kind is AssignmentKind.HUNT:
        if not target.is_active:
            raise ChallengeClosed("This hunt has not been unlocked yet")
        if target.closes_at is not None and now > target.closes_at:
            raise ChallengeClosed("This hunt has closed")
    elif not target.is_active:
        raise ChallengeClosed("This quest is no longer active")

    if target.location is not None and not within_radius(position, target.location):
        raise OutOfRange()

    if target.challenge_loader is not None:
        challenge = target.challenge_loader()
        if challenge is not None and not is_correct(challenge, submitted_answer):
            raise IncorrectAnswer()


def _mark_complete(handle: DelegatedHandle, target: _Target, now: datetime) -> bool:
    """Flip the completion flag once. Returns False when someone already did."""
    db = handle.db
    model = UserQuest if target.kind is AssignmentKind.QUEST else UserHunt
    try:
        result = db.execute(
            update(model)
            .where(model.id == target.assignment.id, model.is_complete.is_(False))
            .values(is_complete=True, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return False

        if target.points:
            db.execute(
                update(UserData)
                .where(UserData.user_id == target.owner_id)
                .values(points=UserData.points + target.points)
                .execution_options(synchronize_session=False)
            )
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        logger.error("Completion write for %s %s failed: %s", target.kind.value, target.assignment.id, e.__class__.__name__)
        raise StoreUnavailable("completion") from e
    return True


def _find_user_hunt(handle: DelegatedHandle, user_id: str, hunt_id: int) -> Optional[UserHunt]:
    return handle.db.execute(
        select(UserHunt).where(UserHunt.user_id == user_id, UserHunt.hunt_id == hunt_id)
    ).scalar_one_or_none()


def activate_hunt(handle: DelegatedHandle, user_id: str, hunt_id: int, now: Optional[datetime] = None) -> UserHunt:
    """Unlock a hunt for a user. Re-activating an active or finished hunt changes nothing."""
    db = handle.db
    now = now or datetime.now(timezone.utc)

    hunt = db.get(Hunt, hunt_id)
    if hunt is None:
        raise NotFound(f"Hunt {hunt_id} not found")
    closes_at = now + timedelta(minutes=hunt.time_limit) if hunt.time_limit else None

    user_hunt = _find_user_hunt(handle, user_id, hunt_id)

    if user_hunt is None:
        user_hunt = UserHunt(user_id=user_id, hunt_id=hunt_id, is_active=True, closes_at=closes_at)
        db.add(user_hunt)
    elif not user_hunt.is_active and not user_hunt.is_complete:
        user_hunt.is_active = True
        user_hunt.closes_at = closes_at
    else:
        return user_hunt

    try:
        db.commit()
    except IntegrityError:
        # Lost a race with another activation of the same pair
        db.rollback()
        user_hunt = _find_user_hunt(handle, user_id, hunt_id)
        if user_hunt is None:
            raise
    return user_hunt


def _run_side_effects(handle: DelegatedHandle, effects: list[_SideEffect]) -> list[SideEffectFailed]:
    failures = []
    for effect in effects:
        try:
            effect.run()
        except Exception:
            handle.db.rollback()
            logger.warning("Side effect %s failed after completion", effect.step.value, exc_info=True)
            failures.append(SideEffectFailed(
                step=effect.step,
                detail=f"Completed, but {effect.step.value.replace('_', ' ')} failed. It can be retried.",
            ))
    return failures


def complete_challenge(
    handle: DelegatedHandle,
    kind: AssignmentKind | str,
    assignment_id: int,
    position: Optional[Position] = None,
    submitted_answer: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CompletionOutcome:
    kind = AssignmentKind(kind)
    now = now or datetime.now(timezone.utc)

    target = _load_target(handle, kind, assignment_id)

    try:
        if authorize_mutation(handle, target.owner_id) is Decision.DENY:
            raise Forbidden("You can only complete your own assignments")
    except Forbidden as e:
        return CompletionOutcome.rejected(kind, assignment_id, e)

    if target.assignment.is_complete:
        return CompletionOutcome(status=CompletionStatus.ALREADY_COMPLETED, kind=kind, assignment_id=assignment_id)

    try:
        _check_gates(target, position, submitted_answer, now)
    except GATE_ERRORS as e:
        logger.info("Completion of %s %s rejected: %s", kind.value, assignment_id, e.reason)
        return CompletionOutcome.rejected(kind, assignment_id, e)

    if not _mark_complete(handle, target, now):
        return CompletionOutcome(status=CompletionStatus.ALREADY_COMPLETED, kind=kind, assignment_id=assignment_id)
    logger.info("%s assignment %s completed by %s", kind.value.capitalize(), assignment_id, target.owner_id)

    outcome = CompletionOutcome(
        status=CompletionStatus.COMPLETED,
        kind=kind,
        assignment_id=assignment_id,
        points_awarded=target.points,
    )

    effects = []
    if target.unlocks_hunt_id is not None:
        def _chain():
            activate_hunt(handle, target.owner_id, target.unlocks_hunt_id, now)
            outcome.activated_hunt_id = target.unlocks_hunt_id
        effects.append(_SideEffect(SideEffectStep.CHAIN_ACTIVATION, _chain))
    if target.collectible_id is not None:
        def _award():
            inventory.add_or_keep(handle, target.owner_id, target.collectible_id, now)
            outcome.awarded_collectible_id = target.collectible_id
        effects.append(_SideEffect(SideEffectStep.AWARD, _award))

    outcome.warnings = _run_side_effects(handle, effects)
    if outcome.warnings:
        outcome.status = CompletionStatus.COMPLETED_WITH_WARNINGS
        outcome.category = "partial_success"
    return outcome
