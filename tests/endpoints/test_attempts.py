from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.constants import AttemptStatusEnum
from app.services.rebuild import rebuild_dispatcher


@pytest.fixture
def dispatched(monkeypatch):
    calls = []
    monkeypatch.setattr(rebuild_dispatcher, "on_attempt_completed", calls.append)
    return calls


def test_completed_attempt_is_accepted(client: TestClient, dispatched):
    payload = {"user_id": 4, "quiz_id": 2, "score": 7, "total_questions": 10, "passed": True}

    response = client.post("/attempts/completed", json=payload)

    assert response.status_code == 202
    assert response.json()["message"] == "Attempt accepted for ranking"
    [attempt] = dispatched
    assert (attempt.user_id, attempt.quiz_id, attempt.status) == (4, 2, AttemptStatusEnum.COMPLETED)


def test_completed_attempt_is_validated(client: TestClient, dispatched):
    response = client.post("/attempts/completed", json={"user_id": 4, "quiz_id": 2, "score": -1, "total_questions": 10})

    assert response.status_code == 422
    assert dispatched == []


def test_release_pending_attempts(client: TestClient, db_session, dispatched, user_factory, attempt_factory):
    student = user_factory()
    release_time = datetime.utcnow() + timedelta(days=1)
    first = attempt_factory(student, quiz_id=1, status=AttemptStatusEnum.PENDING, release_time=release_time)
    second = attempt_factory(student, quiz_id=2, status=AttemptStatusEnum.PENDING, release_time=release_time)

    response = client.post("/attempts/release", json={"attempt_ids": [first.id, second.id, 31337]})

    assert response.status_code == 200
    assert response.json()["data"] == {"matched": 2, "released": 2}
    assert sorted(a.quiz_id for a in dispatched) == [1, 2]


def test_release_requires_ids(client: TestClient, dispatched):
    assert client.post("/attempts/release", json={"attempt_ids": []}).status_code == 422
