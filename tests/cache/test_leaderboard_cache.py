import time
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.core.cache import cache
from app.core.config import settings
from app.schemas.leaderboard import ScopeKey
from app.services.leaderboard import leaderboard_service

GLOBAL_ALL = ScopeKey(scope="global", period="all")


class CallCounter:
    def __init__(self, result=None, error=None, delay=0):
        self.count = 0
        self.result = result
        self.error = error
        self.delay = delay

    def __call__(self, *args, **kwargs):
        self.count += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def _request():
    return SimpleNamespace(state=SimpleNamespace())


@pytest.mark.asyncio
async def test_page_is_served_from_cache_after_first_read(user_factory, attempt_factory):
    student = user_factory()
    attempt_factory(student, score=9)

    first_request, second_request = _request(), _request()
    first = await leaderboard_service.get_page(GLOBAL_ALL, 10, request=first_request)
    second = await leaderboard_service.get_page(GLOBAL_ALL, 10, request=second_request)

    assert first_request.state.cache_status == "MISS"
    assert second_request.state.cache_status == "HIT"
    assert first == second
    assert first["stale"] is False
    assert [row["user_id"] for row in first["leaderboard"]] == [student.id]
    assert await cache.get(leaderboard_service.page_cache_key(GLOBAL_ALL, 10)) == first


@pytest.mark.asyncio
async def test_each_limit_is_cached_separately(monkeypatch):
    counter = CallCounter(result={"leaderboard": []})
    monkeypatch.setattr(leaderboard_service, "rebuild_and_render", counter)

    await leaderboard_service.get_page(GLOBAL_ALL, 10)
    await leaderboard_service.get_page(GLOBAL_ALL, 20)
    await leaderboard_service.get_page(GLOBAL_ALL, 10)

    assert counter.count == 2


@pytest.mark.asyncio
async def test_disabled_cache_rebuilds_every_read(monkeypatch):
    counter = CallCounter(result={"leaderboard": []})
    monkeypatch.setattr(leaderboard_service, "rebuild_and_render", counter)
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)

    await leaderboard_service.get_page(GLOBAL_ALL, 10)
    await leaderboard_service.get_page(GLOBAL_ALL, 10)

    assert counter.count == 2


@pytest.mark.asyncio
async def test_failed_rebuild_serves_stored_rows_as_stale(db_session, monkeypatch, user_factory, attempt_factory):
    student = user_factory()
    attempt_factory(student, score=7)
    leaderboard_service.rebuild(db_session, GLOBAL_ALL)
    monkeypatch.setattr(leaderboard_service, "rebuild_and_render", CallCounter(error=SQLAlchemyError("db down")))

    request = _request()
    page = await leaderboard_service.get_page(GLOBAL_ALL, 10, request=request)

    assert page["stale"] is True
    assert [row["user_id"] for row in page["leaderboard"]] == [student.id]
    assert request.state.cache_status == "STALE"
    assert await cache.get(leaderboard_service.page_cache_key(GLOBAL_ALL, 10)) is None


@pytest.mark.asyncio
async def test_slow_rebuild_falls_back_after_timeout(db_session, monkeypatch, user_factory, attempt_factory):
    attempt_factory(user_factory(), score=7)
    leaderboard_service.rebuild(db_session, GLOBAL_ALL)
    monkeypatch.setattr(settings, "LEADERBOARD_REBUILD_TIMEOUT_SECONDS", 0.05)
    monkeypatch.setattr(leaderboard_service, "rebuild_and_render", CallCounter(result={}, delay=0.5))

    page = await leaderboard_service.get_page(GLOBAL_ALL, 10)

    assert page["stale"] is True
    assert len(page["leaderboard"]) == 1


@pytest.mark.asyncio
async def test_failed_rebuild_without_stored_rows_is_unavailable(monkeypatch):
    monkeypatch.setattr(leaderboard_service, "rebuild_and_render", CallCounter(error=SQLAlchemyError("db down")))

    with pytest.raises(HTTPException) as exc_info:
        await leaderboard_service.get_page(GLOBAL_ALL, 10)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_invalidate_drops_every_limit_of_a_scope():
    quiz_key = ScopeKey(scope="quiz", period="7d", quiz_id=3)
    for limit in (10, 25):
        await cache.set(leaderboard_service.page_cache_key(GLOBAL_ALL, limit), {"leaderboard": []})
    await cache.set(leaderboard_service.page_cache_key(quiz_key, 10), {"leaderboard": []})

    assert await leaderboard_service.invalidate([GLOBAL_ALL]) == 2
    assert await cache.get(leaderboard_service.page_cache_key(GLOBAL_ALL, 25)) is None
    assert await cache.get(leaderboard_service.page_cache_key(quiz_key, 10)) is not None


@pytest.mark.asyncio
async def test_seed_page_renders_stored_rows(db_session, user_factory, attempt_factory):
    attempt_factory(user_factory(), score=7)
    leaderboard_service.rebuild(db_session, GLOBAL_ALL)

    await leaderboard_service.seed_page(GLOBAL_ALL, 10)

    cached = await cache.get(leaderboard_service.page_cache_key(GLOBAL_ALL, 10))
    assert cached["stale"] is False
    assert len(cached["leaderboard"]) == 1
