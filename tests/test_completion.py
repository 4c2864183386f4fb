import math
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Update

from campusquest.core.errors import NotFound, StoreUnavailable
from campusquest.models import Quest, Quiz, UserData, UserHunt, UserInventory, UserQuest
from campusquest.services import completion
from campusquest.services.completion import (
    AssignmentKind,
    CompletionStatus,
    SideEffectStep,
    complete_challenge,
)
from campusquest.services.geofence import Position

METERS_PER_DEGREE = 6371000.0 * math.pi / 180
AT_LIBRARY = Position(lat=0.0, lng=0.0)
FAR_AWAY = Position(lat=200 / METERS_PER_DEGREE, lng=0.0)


def _reload(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


def _inventory(db, user_id):
    return db.execute(select(UserInventory).where(UserInventory.user_id == user_id)).scalars().all()


def test_completes_inside_radius_with_trimmed_answer(db, world, handle_for):
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, " 42 ")

    assert outcome.status is CompletionStatus.COMPLETED
    assert outcome.warnings == []
    assert outcome.points_awarded == 25
    assert outcome.activated_hunt_id == world["hunt"].id
    assert outcome.awarded_collectible_id == world["badge"].id

    assert _reload(db, UserQuest, uq_id).is_complete is True
    assert db.get(UserData, "u1").points == 25
    assert len(_inventory(db, "u1")) == 1
    user_hunt = db.execute(select(UserHunt).where(UserHunt.user_id == "u1")).scalar_one()
    assert user_hunt.is_active is True
    assert user_hunt.closes_at is not None


def test_outside_radius_is_rejected_without_mutation(db, world, handle_for):
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u1"), AssignmentKind.QUEST, uq_id, FAR_AWAY, "42")

    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason == "out_of_range"
    assert outcome.category == "distance"
    assert _reload(db, UserQuest, uq_id).is_complete is False
    assert db.get(UserData, "u1").points == 0
    assert _inventory(db, "u1") == []


def test_missing_position_is_rejected(world, handle_for):
    outcome = complete_challenge(handle_for("u1"), "quest", world["user_quest"].id, None, "42")
    assert outcome.reason == "out_of_range"


def test_far_side_of_the_world_is_rejected(db, world, handle_for):
    library = world["location"]
    library.lat, library.lng = 69.51232454868148, 86.5812282599507
    db.commit()

    opposite = Position(lat=-69.51232454868148, lng=-93.4187717400493)
    outcome = complete_challenge(handle_for("u1"), "quest", world["user_quest"].id, opposite, "42")
    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason == "out_of_range"


def test_wrong_answer_is_rejected(db, world, handle_for):
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "41")
    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason == "incorrect_answer"
    assert _reload(db, UserQuest, uq_id).is_complete is False


def test_multiple_choice_requires_exact_case(db, world, handle_for):
    quiz = Quiz(question_text="Campus colour?", question_type="mcq", options=["Red", "Blue"], correct_answer="Red")
    db.add(quiz)
    db.flush()
    world["quest"].quiz_id = quiz.id
    db.commit()
    uq_id = world["user_quest"].id

    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "red")
    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason in ("invalid_answer_input", "incorrect_answer")
    assert _reload(db, UserQuest, uq_id).is_complete is False

    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "Red")
    assert outcome.status is CompletionStatus.COMPLETED


def test_misconfigured_multiple_choice_is_refused(db, world, handle_for):
    quiz = Quiz(question_text="Broken", question_type="mcq", options="Only one", correct_answer="Only one")
    db.add(quiz)
    db.flush()
    world["quest"].quiz_id = quiz.id
    db.commit()

    outcome = complete_challenge(handle_for("u1"), "quest", world["user_quest"].id, AT_LIBRARY, "Only one")
    assert outcome.reason == "invalid_answer_input"
    assert outcome.status_code == 400


def test_second_completion_is_a_no_op(db, world, handle_for):
    handle = handle_for("u1")
    uq_id = world["user_quest"].id

    first = complete_challenge(handle, "quest", uq_id, AT_LIBRARY, "42")
    second = complete_challenge(handle, "quest", uq_id, AT_LIBRARY, "42")

    assert first.status is CompletionStatus.COMPLETED
    assert second.status is CompletionStatus.ALREADY_COMPLETED
    assert second.points_awarded == 0
    assert _reload(db, UserData, "u1").points == 25
    assert len(_inventory(db, "u1")) == 1


def test_lost_race_observes_already_completed(db, world, handle_for):
    uq_id = world["user_quest"].id
    # Another request flips the flag between our read and our write
    original = completion._check_gates

    def gates_then_race(*args, **kwargs):
        original(*args, **kwargs)
        db.execute(
            UserQuest.__table__.update().where(UserQuest.id == uq_id).values(is_complete=True)
        )
        db.commit()

    completion._check_gates = gates_then_race
    try:
        outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "42")
    finally:
        completion._check_gates = original

    assert outcome.status is CompletionStatus.ALREADY_COMPLETED
    assert _reload(db, UserData, "u1").points == 0
    assert _inventory(db, "u1") == []


def test_other_user_is_forbidden(db, world, handle_for):
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u2"), "quest", uq_id, AT_LIBRARY, "42")
    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason == "forbidden"
    assert outcome.status_code == 403
    assert _reload(db, UserQuest, uq_id).is_complete is False


def test_moderator_may_complete_for_owner(db, world, handle_for):
    outcome = complete_challenge(handle_for("mod"), "quest", world["user_quest"].id, AT_LIBRARY, "42")
    assert outcome.status is CompletionStatus.COMPLETED
    assert _reload(db, UserData, "u1").points == 25
    assert _reload(db, UserData, "mod").points == 0


def test_unknown_assignment(world, handle_for):
    with pytest.raises(NotFound):
        complete_challenge(handle_for("u1"), "quest", 9999, AT_LIBRARY, "42")


def test_chain_activation_failure_keeps_completion(db, world, handle_for, monkeypatch):
    def broken_activation(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("connection reset"))

    monkeypatch.setattr(completion, "activate_hunt", broken_activation)
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "42")

    assert outcome.status is CompletionStatus.COMPLETED_WITH_WARNINGS
    assert outcome.category == "partial_success"
    assert [w.step for w in outcome.warnings] == [SideEffectStep.CHAIN_ACTIVATION]
    assert "connection reset" not in outcome.warnings[0].detail
    assert _reload(db, UserQuest, uq_id).is_complete is True
    # The award still ran after the failed activation
    assert outcome.awarded_collectible_id == world["badge"].id
    assert len(_inventory(db, "u1")) == 1


def test_award_failure_is_reported_independently(db, world, handle_for, monkeypatch):
    def broken_award(*args, **kwargs):
        raise StoreUnavailable("award")

    monkeypatch.setattr(completion.inventory, "add_or_keep", broken_award)
    uq_id = world["user_quest"].id
    outcome = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "42")

    assert outcome.status is CompletionStatus.COMPLETED_WITH_WARNINGS
    assert [w.step for w in outcome.warnings] == [SideEffectStep.AWARD]
    assert outcome.activated_hunt_id == world["hunt"].id
    assert _reload(db, UserQuest, uq_id).is_complete is True
    assert db.execute(select(UserHunt).where(UserHunt.user_id == "u1")).scalar_one().is_active


def test_completion_write_timeout_leaves_assignment_untouched(db, world, handle_for, monkeypatch):
    uq_id = world["user_quest"].id
    real_execute = db.execute

    def timing_out(statement, *args, **kwargs):
        if isinstance(statement, Update):
            raise OperationalError("UPDATE", {}, Exception("statement timeout"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", timing_out)
    with pytest.raises(StoreUnavailable) as exc:
        complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "42")
    assert exc.value.step == "completion"

    monkeypatch.undo()
    assert _reload(db, UserQuest, uq_id).is_complete is False

    retry = complete_challenge(handle_for("u1"), "quest", uq_id, AT_LIBRARY, "42")
    assert retry.status is CompletionStatus.COMPLETED


def test_quest_without_location_or_quiz_completes_directly(db, world, handle_for):
    quest = Quest(name="Orientation", points_achievable=5)
    db.add(quest)
    db.flush()
    uq = UserQuest(user_id="u1", quest_id=quest.id)
    db.add(uq)
    db.commit()

    outcome = complete_challenge(handle_for("u1"), "quest", uq.id)
    assert outcome.status is CompletionStatus.COMPLETED
    assert outcome.warnings == []
    assert outcome.activated_hunt_id is None


def test_inactive_quest_is_closed(db, world, handle_for):
    world["quest"].is_active = False
    db.commit()
    outcome = complete_challenge(handle_for("u1"), "quest", world["user_quest"].id, AT_LIBRARY, "42")
    assert outcome.reason == "closed"


def test_hunt_completion_with_free_text(db, active_hunt, handle_for):
    uh_id = active_hunt.id
    outcome = complete_challenge(handle_for("u1"), "hunt", uh_id, None, "third")
    assert outcome.status is CompletionStatus.COMPLETED
    assert _reload(db, UserHunt, uh_id).is_complete is True


def test_hunt_after_closing_time_is_rejected(db, active_hunt, handle_for):
    uh_id = active_hunt.id
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    outcome = complete_challenge(handle_for("u1"), "hunt", uh_id, None, "Third", now=later)
    assert outcome.status is CompletionStatus.REJECTED
    assert outcome.reason == "closed"
    assert outcome.category == "expired"
    assert _reload(db, UserHunt, uh_id).is_complete is False


def test_locked_hunt_is_rejected(db, world, handle_for):
    uh = UserHunt(user_id="u1", hunt_id=world["hunt"].id, is_active=False)
    db.add(uh)
    db.commit()
    outcome = complete_challenge(handle_for("u1"), "hunt", uh.id, None, "Third")
    assert outcome.reason == "closed"


def test_activate_hunt_is_idempotent(db, world, handle_for):
    handle = handle_for("u2")
    first = completion.activate_hunt(handle, "u2", world["hunt"].id)
    second = completion.activate_hunt(handle, "u2", world["hunt"].id)
    assert first.id == second.id
    assert len(db.execute(select(UserHunt).where(UserHunt.user_id == "u2")).scalars().all()) == 1


def test_concurrent_activation_returns_the_winning_row(db, world, handle_for, monkeypatch):
    hunt_id = world["hunt"].id
    won_closes_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    lookups = []
    real_find = completion._find_user_hunt

    def racing_find(handle, user_id, hunt_id):
        lookups.append(hunt_id)
        if len(lookups) == 1:
            db.add(UserHunt(user_id=user_id, hunt_id=hunt_id, is_active=True, closes_at=won_closes_at))
            db.commit()
            return None
        return real_find(handle, user_id, hunt_id)

    monkeypatch.setattr(completion, "_find_user_hunt", racing_find)

    user_hunt = completion.activate_hunt(handle_for("u2"), "u2", hunt_id)

    assert len(lookups) == 2
    assert user_hunt.closes_at.replace(tzinfo=None) == won_closes_at.replace(tzinfo=None)
    rows = db.execute(select(UserHunt).where(UserHunt.user_id == "u2")).scalars().all()
    assert len(rows) == 1
