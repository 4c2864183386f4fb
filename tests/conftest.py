import os

# Must be set before campusquest is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("SUPABASE_JWT_SECRET", None)

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from campusquest.auth.delegation import DelegatedHandle
from campusquest.auth.token import create_access_token
from campusquest.database import Base, SessionLocal, engine
from campusquest.main import app
from campusquest.models import Collectible, Hunt, Location, Quest, Quiz, UserData, UserHunt, UserQuest


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


def token_for(user_id: str, **extra) -> str:
    return create_access_token({"sub": user_id, **extra})


def auth_header(user_id: str) -> dict:
    return {"Authorization": f"Bearer {token_for(user_id)}"}


@pytest.fixture
def handle_for(db):
    def _make(user_id: str) -> DelegatedHandle:
        return DelegatedHandle(token=token_for(user_id), db=db)
    return _make


@pytest.fixture
def world(db):
    """Two students, one moderator, a geofenced quest with a free-text quiz."""
    db.add_all([
        UserData(user_id="u1", email="u1@campus.test", is_moderator=False, points=0),
        UserData(user_id="u2", email="u2@campus.test", is_moderator=False, points=0),
        UserData(user_id="mod", email="mod@campus.test", is_moderator=True, points=0),
    ])
    library = Location(name="Library", lat=0.0, lng=0.0, radius=50.0)
    quiz = Quiz(question_text="Answer to everything?", question_type="text", correct_answer="42")
    badge = Collectible(name="Bookworm", description="Visited the library")
    hunt = Hunt(name="Stacks Hunt", description="Find the archive", question="Which floor?", answer="Third", time_limit=30)
    db.add_all([library, quiz, badge, hunt])
    db.flush()

    quest = Quest(
        name="Library Visit",
        location_id=library.id,
        quiz_id=quiz.id,
        collectible_id=badge.id,
        hunt_id=hunt.id,
        points_achievable=25,
    )
    db.add(quest)
    db.flush()
    user_quest = UserQuest(user_id="u1", quest_id=quest.id)
    db.add(user_quest)
    db.commit()

    return {
        "location": library,
        "quiz": quiz,
        "badge": badge,
        "hunt": hunt,
        "quest": quest,
        "user_quest": user_quest,
    }


@pytest.fixture
def active_hunt(db, world):
    user_hunt = UserHunt(
        user_id="u1",
        hunt_id=world["hunt"].id,
        is_active=True,
        closes_at=datetime.now(timezone.utc) + timedelta(minutes=30),
    )
    db.add(user_hunt)
    db.commit()
    return user_hunt
