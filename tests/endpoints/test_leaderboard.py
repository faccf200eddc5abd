from fastapi.testclient import TestClient


def test_leaderboard_ranks_students(client: TestClient, user_factory, attempt_factory):
    strong, weak = user_factory(username="strong"), user_factory(username="weak")
    attempt_factory(strong, score=9)
    attempt_factory(weak, score=4)

    response = client.get("/leaderboard/", params={"scope": "global", "period": "all", "limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Leaderboard retrieved successfully"
    page = body["data"]
    assert page["scope"] == "global"
    assert page["period"] == "all"
    assert page["stale"] is False
    assert [row["username"] for row in page["leaderboard"]] == ["strong", "weak"]
    assert [row["rank"] for row in page["leaderboard"]] == [1, 2]
    assert response.headers["X-Cache"] == "MISS"
    assert "X-Request-ID" in response.headers


def test_leaderboard_second_read_hits_cache(client: TestClient, user_factory, attempt_factory):
    attempt_factory(user_factory())

    client.get("/leaderboard/", params={"scope": "quiz", "period": "30d", "quiz_id": 1})
    response = client.get("/leaderboard/", params={"scope": "quiz", "period": "30d", "quiz_id": 1})

    assert response.status_code == 200
    assert response.headers["X-Cache"] == "HIT"
    assert len(response.json()["data"]["leaderboard"]) == 1


def test_leaderboard_for_batch(client: TestClient, user_factory, attempt_factory):
    attempt_factory(user_factory(batch="2026-spring"))
    attempt_factory(user_factory(batch="2025-fall"))

    response = client.get("/leaderboard/", params={"scope": "batch", "period": "all", "batch_key": "2026-spring"})

    assert response.status_code == 200
    assert response.json()["data"]["scope_ref"] == "2026-spring"
    assert len(response.json()["data"]["leaderboard"]) == 1


def test_leaderboard_with_no_attempts_is_empty(client: TestClient):
    response = client.get("/leaderboard/")

    assert response.status_code == 200
    assert response.json()["data"]["leaderboard"] == []


def test_leaderboard_rejects_incomplete_scope(client: TestClient):
    response = client.get("/leaderboard/", params={"scope": "batch", "period": "all"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"

    response = client.get("/leaderboard/", params={"scope": "global", "quiz_id": 4})
    assert response.status_code == 400


def test_leaderboard_validates_query(client: TestClient):
    assert client.get("/leaderboard/", params={"period": "1y"}).status_code == 422
    assert client.get("/leaderboard/", params={"limit": 0}).status_code == 422

    response = client.get("/leaderboard/", params={"limit": 1000})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_leaderboard_reuses_request_id(client: TestClient):
    response = client.get("/leaderboard/", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
