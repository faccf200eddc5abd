from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from app.core.constants import LeaderboardPeriodEnum, LeaderboardScopeEnum
from app.crud.leaderboard_entry import leaderboard_entry as crud_entry
from app.models.quiz_attempt import QuizAttempt
from app.schemas.leaderboard import ScopeKey
from app.services.badge import badge_service
from app.services.leaderboard import leaderboard_service

GLOBAL_ALL = ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=LeaderboardPeriodEnum.ALL)
GLOBAL_7D = ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=LeaderboardPeriodEnum.LAST_7_DAYS)


@pytest.mark.parametrize("kwargs", [
    {"scope": "batch"},
    {"scope": "batch", "scope_ref": ""},
    {"scope": "quiz"},
    {"scope": "global", "quiz_id": 3},
    {"scope": "global", "scope_ref": "cohort-a"},
    {"scope": "quiz", "quiz_id": 3, "scope_ref": "cohort-a"},
    {"scope": "weekly"},
    {"period": "1d"},
])
def test_invalid_scope_keys_are_rejected(kwargs):
    with pytest.raises(ValueError):
        ScopeKey(**kwargs)


def test_build_scope_key_maps_invalid_keys_to_bad_request():
    with pytest.raises(HTTPException) as exc_info:
        leaderboard_service.build_scope_key("batch", "all", batch_key="   ")
    assert exc_info.value.status_code == 400

    key = leaderboard_service.build_scope_key("batch", "7d", batch_key=" cohort-a ")
    assert key.scope_ref == "cohort-a"


def test_scope_ids_are_distinct_per_key():
    keys = [
        GLOBAL_ALL,
        GLOBAL_7D,
        ScopeKey(scope="quiz", period="all", quiz_id=1),
        ScopeKey(scope="quiz", period="all", quiz_id=2),
        ScopeKey(scope="batch", period="all", scope_ref="a*b"),
        ScopeKey(scope="batch", period="all", scope_ref="a?b"),
    ]
    ids = [k.scope_id for k in keys]
    assert len(set(ids)) == len(ids)
    assert not any(ch in scope_id for scope_id in ids for ch in "*?[]")


def test_clamp_limit():
    assert leaderboard_service.clamp_limit(None) == 10
    assert leaderboard_service.clamp_limit(0) == 10
    assert leaderboard_service.clamp_limit(25) == 25
    assert leaderboard_service.clamp_limit(5000) == 100


def test_rebuild_is_idempotent(db_session, user_factory, attempt_factory):
    for score in (9, 5, 7):
        attempt_factory(user_factory(), score=score)

    assert leaderboard_service.rebuild(db_session, GLOBAL_ALL) == 3
    first = [(e.user_id, e.composite_score) for e in leaderboard_service.top_n(db_session, GLOBAL_ALL, 10)]
    assert leaderboard_service.rebuild(db_session, GLOBAL_ALL) == 3
    second = [(e.user_id, e.composite_score) for e in leaderboard_service.top_n(db_session, GLOBAL_ALL, 10)]

    assert first == second
    assert crud_entry.count(db_session, GLOBAL_ALL) == 3


def test_rebuild_orders_by_composite_score(db_session, user_factory, attempt_factory):
    strong, weak, middle = user_factory(), user_factory(), user_factory()
    attempt_factory(strong, score=9)
    attempt_factory(weak, score=5)
    attempt_factory(middle, score=7)

    leaderboard_service.rebuild(db_session, GLOBAL_ALL)

    ranked = [e.user_id for e in leaderboard_service.top_n(db_session, GLOBAL_ALL, 10)]
    assert ranked == [strong.id, middle.id, weak.id]
    assert [e.user_id for e in leaderboard_service.top_n(db_session, GLOBAL_ALL, 2)] == [strong.id, middle.id]


def test_equal_scores_rank_by_user_id(db_session, user_factory, attempt_factory):
    first, second = user_factory(), user_factory()
    attempt_factory(second, score=6)
    attempt_factory(first, score=6)

    leaderboard_service.rebuild(db_session, GLOBAL_ALL)

    ranked = [e.user_id for e in leaderboard_service.top_n(db_session, GLOBAL_ALL, 10)]
    assert ranked == sorted([first.id, second.id])


def test_rebuild_removes_rows_that_left_the_window(db_session, user_factory, attempt_factory):
    now = datetime.utcnow()
    stays, leaves = user_factory(), user_factory()
    attempt_factory(stays, completed_at=now - timedelta(days=1))
    old = attempt_factory(leaves, completed_at=now - timedelta(days=2))

    leaderboard_service.rebuild(db_session, GLOBAL_7D, now=now)
    assert crud_entry.count(db_session, GLOBAL_7D) == 2

    db_session.query(QuizAttempt).filter(QuizAttempt.id == old.id).update(
        {"completed_at": now - timedelta(days=10)}
    )
    db_session.commit()
    leaderboard_service.rebuild(db_session, GLOBAL_7D, now=now)

    assert [e.user_id for e in leaderboard_service.top_n(db_session, GLOBAL_7D, 10)] == [stays.id]


def test_rebuild_of_empty_scope_clears_it(db_session, user_factory, attempt_factory):
    now = datetime.utcnow()
    student = user_factory()
    attempt = attempt_factory(student, completed_at=now - timedelta(days=1))
    leaderboard_service.rebuild(db_session, GLOBAL_7D, now=now)
    assert leaderboard_service.has(db_session, GLOBAL_7D)

    db_session.delete(attempt)
    db_session.commit()
    assert leaderboard_service.rebuild(db_session, GLOBAL_7D, now=now) == 0
    assert not leaderboard_service.has(db_session, GLOBAL_7D)


def test_scopes_are_stored_independently(db_session, user_factory, attempt_factory):
    student = user_factory()
    attempt_factory(student, quiz_id=4)
    quiz_key = ScopeKey(scope="quiz", period="all", quiz_id=4)

    leaderboard_service.rebuild(db_session, quiz_key)

    assert leaderboard_service.has(db_session, quiz_key)
    assert not leaderboard_service.has(db_session, GLOBAL_ALL)


def test_batch_scope_ranks_members_only(db_session, user_factory, attempt_factory):
    member = user_factory(batch="cohort-a")
    outsider = user_factory(batch="cohort-b")
    attempt_factory(member, score=5)
    attempt_factory(outsider, score=10)
    batch_key = ScopeKey(scope="batch", period="all", scope_ref="cohort-a")

    leaderboard_service.rebuild(db_session, batch_key)

    assert [e.user_id for e in leaderboard_service.top_n(db_session, batch_key, 10)] == [member.id]


def test_known_scope_keys_cover_quizzes_and_batches(db_session, user_factory, attempt_factory):
    student = user_factory(batch="cohort-a")
    attempt_factory(student, quiz_id=7)

    keys = {k.scope_id for k in leaderboard_service.known_scope_keys(db_session)}

    for period in LeaderboardPeriodEnum:
        assert ScopeKey(scope="global", period=period).scope_id in keys
        assert ScopeKey(scope="quiz", period=period, quiz_id=7).scope_id in keys
        assert ScopeKey(scope="batch", period=period, scope_ref="cohort-a").scope_id in keys
    assert len(keys) == 9


def test_render_page_enriches_rows(db_session, user_factory, attempt_factory):
    now = datetime.utcnow()
    student = user_factory(username="ada", full_name="Ada L", college="Analytical")
    attempt_factory(student, score=6, completed_at=now - timedelta(hours=2))
    attempt_factory(student, score=8, completed_at=now - timedelta(hours=1))
    badge_service.ensure_default_badges(db_session)
    from app.crud.badge import user_badge as crud_user_badge
    crud_user_badge.award(db_session, user_id=student.id, badge_code="five_passed", meta={"passedCount": 5})
    db_session.commit()

    leaderboard_service.rebuild(db_session, GLOBAL_ALL)
    page = leaderboard_service.render_page(db_session, GLOBAL_ALL, 10)

    assert page.stale is False
    [row] = page.leaderboard
    assert row.rank == 1
    assert row.display_name == "Ada L"
    assert row.username == "ada"
    assert row.college == "Analytical"
    assert row.avatar_url == ""
    assert row.attempts == 2
    assert row.sparkline == [80, 60]
    assert [b.code for b in row.badges] == ["five_passed"]
    assert row.badges[0].icon == "✅"


def test_upserts_need_a_supported_dialect():
    from types import SimpleNamespace
    session = SimpleNamespace(get_bind=lambda: SimpleNamespace(dialect=SimpleNamespace(name="mysql")))

    with pytest.raises(NotImplementedError):
        crud_entry.insert_stmt(session)


def test_sparkline_keeps_newest_attempts_per_user(db_session, user_factory, attempt_factory):
    from app.crud.quiz_attempt import quiz_attempt as crud_attempt
    now = datetime.utcnow()
    busy, quiet = user_factory(), user_factory()
    for hours_ago, score in enumerate([10, 9, 8, 7, 6]):
        attempt_factory(busy, score=score, completed_at=now - timedelta(hours=hours_ago))
    attempt_factory(quiet, score=5)

    sparklines = crud_attempt.get_recent_percentages(db_session, [busy.id, quiet.id], per_user=3)

    assert sparklines == {busy.id: [100, 90, 80], quiet.id: [50]}
    assert crud_attempt.get_recent_percentages(db_session, [], per_user=3) == {}
