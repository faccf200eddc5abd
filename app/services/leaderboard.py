import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.core.cache_config import CACHE_KEYS, CACHE_TTL, INVALIDATION_PATTERNS
from app.core.config import settings
from app.core.constants import LeaderboardPeriodEnum, LeaderboardScopeEnum
from app.core.database import SessionLocal
from app.crud.badge import badge as crud_badge, user_badge as crud_user_badge
from app.crud.leaderboard_entry import leaderboard_entry as crud_entry
from app.crud.quiz_attempt import quiz_attempt as crud_attempt
from app.crud.user import user as crud_user
from app.models.leaderboard_entry import LeaderboardEntry
from app.schemas.leaderboard import LeaderboardPage, LeaderboardRow, RowBadge, ScopeKey
from app.services.aggregator import attempt_aggregator

logger = logging.getLogger(__name__)


class LeaderboardService:

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def build_scope_key(
        self,
        scope: str,
        period: str,
        quiz_id: Optional[int] = None,
        batch_key: Optional[str] = None,
    ) -> ScopeKey:
        """Validate request parameters before any aggregation work happens."""
        batch_key = batch_key.strip() if batch_key else None
        try:
            return ScopeKey(scope=scope, period=period, quiz_id=quiz_id, scope_ref=batch_key or None)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid leaderboard scope: {messages}")

    def clamp_limit(self, limit: Optional[int]) -> int:
        if not limit or limit < 1:
            return settings.LEADERBOARD_DEFAULT_LIMIT
        return min(limit, settings.LEADERBOARD_MAX_LIMIT)

    def _batch_members(self, db: Session, scope_key: ScopeKey) -> Optional[List[int]]:
        if scope_key.scope != LeaderboardScopeEnum.BATCH:
            return None
        return crud_user.get_ids_by_batch(db, scope_key.scope_ref)

    def rebuild(self, db: Session, scope_key: ScopeKey, now: Optional[datetime] = None) -> int:
        """Recompute every stored row for ``scope_key`` and commit.

        Safe to run concurrently for the same key: each run is a pure function
        of the attempt data and converges through the (user, scope) upsert.
        """
        now = now or datetime.utcnow()
        try:
            summaries = attempt_aggregator.aggregate(
                db, scope_key, now=now, user_ids=self._batch_members(db, scope_key)
            )
            written = crud_entry.replace_scope(db, scope_key, summaries, updated_at=now)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Rebuilt leaderboard {scope_key}: {written} entries")
        return written

    def top_n(self, db: Session, scope_key: ScopeKey, limit: int) -> List[LeaderboardEntry]:
        return crud_entry.top_n(db, scope_key, limit)

    def has(self, db: Session, scope_key: ScopeKey) -> bool:
        return crud_entry.has(db, scope_key)

    def known_scope_keys(self, db: Session) -> List[ScopeKey]:
        quiz_ids = crud_attempt.get_completed_quiz_ids(db)
        batches = crud_user.get_distinct_batches(db)
        keys = []
        for period in LeaderboardPeriodEnum:
            keys.append(ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=period))
            for quiz_id in quiz_ids:
                keys.append(ScopeKey(scope=LeaderboardScopeEnum.QUIZ, period=period, quiz_id=quiz_id))
            for batch in batches:
                keys.append(ScopeKey(scope=LeaderboardScopeEnum.BATCH, period=period, scope_ref=batch))
        return keys

    def _badges_by_user(self, db: Session, user_ids: List[int]) -> Dict[int, List[RowBadge]]:
        catalog = {b.code: b for b in crud_badge.get_active(db)}
        badges: Dict[int, List[RowBadge]] = {}
        for earned in crud_user_badge.get_for_users(db, user_ids):
            entry = catalog.get(earned.badge_code)
            badges.setdefault(earned.user_id, []).append(RowBadge(
                code=earned.badge_code,
                name=entry.name if entry else earned.badge_code,
                icon=(entry.icon if entry else None) or "",
            ))
        return badges

    def render_page(self, db: Session, scope_key: ScopeKey, limit: int, *, stale: bool = False) -> LeaderboardPage:
        entries = self.top_n(db, scope_key, limit)
        user_ids = [e.user_id for e in entries]
        users = crud_user.get_many(db, user_ids)
        badges = self._badges_by_user(db, user_ids)
        sparklines = crud_attempt.get_recent_percentages(
            db, user_ids, per_user=settings.LEADERBOARD_SPARKLINE_LENGTH
        )

        rows = []
        for rank, entry in enumerate(entries, start=1):
            user = users.get(entry.user_id)
            rows.append(LeaderboardRow(
                rank=rank,
                user_id=entry.user_id,
                display_name=user.full_name if user else None,
                username=user.username if user else None,
                avatar_url=(user.avatar if user else None) or "",
                college=(user.college if user else None) or "",
                composite_score=entry.composite_score,
                avg_score=entry.avg_score,
                accuracy=entry.accuracy,
                attempts=entry.attempts,
                badges=badges.get(entry.user_id, []),
                sparkline=sparklines.get(entry.user_id, []),
            ))

        return LeaderboardPage(
            scope=scope_key.scope,
            period=scope_key.period,
            quiz_id=scope_key.quiz_id,
            scope_ref=scope_key.scope_ref,
            generated_at=datetime.utcnow(),
            stale=stale,
            leaderboard=rows,
        )

    def rebuild_and_render(self, scope_key: ScopeKey, limit: int) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            self.rebuild(db, scope_key)
            return self.render_page(db, scope_key, limit).model_dump(mode="json")
        finally:
            db.close()

    def render_stored(self, scope_key: ScopeKey, limit: int) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            if not self.has(db, scope_key):
                return None
            return self.render_page(db, scope_key, limit, stale=True).model_dump(mode="json")
        finally:
            db.close()

    def page_cache_key(self, scope_key: ScopeKey, limit: int) -> str:
        return CACHE_KEYS["leaderboard_page"].format(scope_key.scope_id, limit)

    async def get_page(self, scope_key: ScopeKey, limit: int, *, request: Optional[Request] = None) -> Dict[str, Any]:
        """Cached page, or rebuild-then-render with a bounded wait.

        When the rebuild fails or runs past the timeout the last stored rows
        are served with ``stale`` set; only when nothing is stored does the
        read fail with 503.
        """
        cache_key = self.page_cache_key(scope_key, limit)
        cached = await cache.get(cache_key)
        if cached is not None:
            _mark_cache_status(request, "HIT")
            return cached

        try:
            page = await asyncio.wait_for(
                asyncio.to_thread(self.rebuild_and_render, scope_key, limit),
                timeout=settings.LEADERBOARD_REBUILD_TIMEOUT_SECONDS,
            )
        except (asyncio.TimeoutError, SQLAlchemyError) as e:
            logger.error(f"On-demand rebuild of {scope_key} failed: {e!r}")
            page = await self._stored_fallback(scope_key, limit)
            _mark_cache_status(request, "STALE")
            return page

        await cache.set(cache_key, page, ttl=CACHE_TTL["leaderboard_page"])
        _mark_cache_status(request, "MISS")
        return page

    async def _stored_fallback(self, scope_key: ScopeKey, limit: int) -> Dict[str, Any]:
        try:
            page = await asyncio.to_thread(self.render_stored, scope_key, limit)
        except SQLAlchemyError as e:
            logger.error(f"Stored leaderboard for {scope_key} unavailable: {e!r}")
            page = None
        if page is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Leaderboard is temporarily unavailable."
            )
        return page

    async def seed_page(self, scope_key: ScopeKey, limit: int) -> None:
        """Render the stored rows into the cache without rebuilding."""
        page = await asyncio.to_thread(self._render_fresh, scope_key, limit)
        await cache.set(self.page_cache_key(scope_key, limit), page, ttl=CACHE_TTL["leaderboard_page"])

    def _render_fresh(self, scope_key: ScopeKey, limit: int) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            return self.render_page(db, scope_key, limit).model_dump(mode="json")
        finally:
            db.close()

    async def invalidate(self, scope_keys: Iterable[ScopeKey]) -> int:
        removed = 0
        for scope_key in scope_keys:
            for pattern in INVALIDATION_PATTERNS["leaderboard_rebuilt"]:
                removed += await cache.delete_pattern(pattern.format(scope_key.scope_id))
        return removed


def _mark_cache_status(request: Optional[Request], cache_status: str) -> None:
    if request is not None:
        request.state.cache_status = cache_status


leaderboard_service = LeaderboardService()
