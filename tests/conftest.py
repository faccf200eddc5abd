import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# must be set before the app modules read their settings
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.pop("REDIS_URL", None)

import asyncio
import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.cache import cache
from app.core.constants import AttemptStatusEnum
from app.core.database import Base, SessionLocal, engine
from app.models import badge, leaderboard_entry, quiz_attempt, user  # noqa: F401
from app.models.quiz_attempt import QuizAttempt
from app.models.user import User
from app.utils.events import event_bus


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_cache():
    asyncio.run(cache.clear())
    handlers = {event: list(h) for event, h in event_bus._handlers.items()}
    yield
    asyncio.run(cache.clear())
    event_bus._handlers = handlers


@pytest.fixture(scope="function")
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture(scope="function")
def client():
    import main
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def user_factory(db_session):
    def _user_factory(username=None, batch=None, full_name="Test Student", **kwargs):
        user = User(
            full_name=full_name,
            username=username or f"student-{uuid.uuid4().hex[:8]}",
            batch=batch,
            is_active=True,
            **kwargs
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _user_factory


@pytest.fixture
def attempt_factory(db_session):
    def _attempt_factory(user, quiz_id=1, score=8, total_questions=10, passed=None,
                         status=AttemptStatusEnum.COMPLETED, completed_at=None, release_time=None):
        if passed is None:
            passed = total_questions > 0 and score * 2 >= total_questions
        if completed_at is None and status == AttemptStatusEnum.COMPLETED:
            completed_at = datetime.utcnow() - timedelta(minutes=5)
        attempt = QuizAttempt(
            user_id=user.id,
            quiz_id=quiz_id,
            score=score,
            total_questions=total_questions,
            passed=passed,
            status=status,
            completed_at=completed_at,
            release_time=release_time,
        )
        db_session.add(attempt)
        db_session.commit()
        db_session.refresh(attempt)
        return attempt
    return _attempt_factory
