import logging
import math
from datetime import datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import BadgeCodeEnum, DEFAULT_BADGES, LeaderboardPeriodEnum, LeaderboardScopeEnum
from app.crud.badge import badge as crud_badge, user_badge as crud_user_badge
from app.crud.leaderboard_entry import leaderboard_entry as crud_entry
from app.crud.quiz_attempt import quiz_attempt as crud_attempt
from app.schemas.badge import Badge, EarnedBadge
from app.schemas.leaderboard import ScopeKey

logger = logging.getLogger(__name__)

MONTHLY_GLOBAL = ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=LeaderboardPeriodEnum.LAST_30_DAYS)


class BadgeService:

    def ensure_default_badges(self, db: Session) -> None:
        """Idempotent catalog bootstrap, safe at start-up and before every evaluation."""
        crud_badge.upsert_defaults(db, DEFAULT_BADGES)
        db.commit()

    def evaluate(self, db: Session, user_id: int, now: Optional[datetime] = None) -> List[str]:
        """Check every badge rule for ``user_id`` and record the newly earned ones.

        Awards are insert-once on (user_id, badge_code), so concurrent or
        repeated evaluations never produce duplicates. Returns the codes
        awarded by this call.
        """
        now = now or datetime.utcnow()
        self.ensure_default_badges(db)

        awarded = []
        for code, meta in (
            self._check_pass_threshold(db, user_id),
            self._check_streak(db, user_id, now),
            self._check_top_percent(db, user_id),
        ):
            if meta is None:
                continue
            if crud_user_badge.award(db, user_id=user_id, badge_code=code.value, meta=meta, earned_at=now):
                awarded.append(code.value)
        db.commit()

        if awarded:
            logger.info(f"User {user_id} earned badges: {', '.join(awarded)}")
        return awarded

    def _check_pass_threshold(self, db: Session, user_id: int):
        passed_count = crud_attempt.count_passed(db, user_id)
        if passed_count >= settings.BADGE_PASS_THRESHOLD:
            return BadgeCodeEnum.FIVE_PASSED, {"passedCount": passed_count}
        return BadgeCodeEnum.FIVE_PASSED, None

    def _check_streak(self, db: Session, user_id: int, now: datetime):
        # Walks back from today; the first day without a completed attempt ends the streak
        required = settings.BADGE_STREAK_DAYS
        today = now.date()
        since = datetime.combine(today - timedelta(days=required - 1), time.min)
        active_days = {ts.date() for ts in crud_attempt.get_completion_times(db, user_id, since)}

        streak = 0
        for offset in range(required):
            if today - timedelta(days=offset) not in active_days:
                break
            streak += 1

        if streak >= required:
            return BadgeCodeEnum.STREAK_7, {"streak": streak}
        return BadgeCodeEnum.STREAK_7, None

    def _check_top_percent(self, db: Session, user_id: int):
        total = crud_entry.count(db, MONTHLY_GLOBAL)
        if total == 0:
            return BadgeCodeEnum.TOP_1PCT_MONTHLY, None

        top_n = max(1, math.floor(total * settings.BADGE_TOP_PERCENT))
        if user_id in crud_entry.get_ranked_user_ids(db, MONTHLY_GLOBAL, top_n):
            return BadgeCodeEnum.TOP_1PCT_MONTHLY, {"total": total}
        return BadgeCodeEnum.TOP_1PCT_MONTHLY, None

    def get_catalog(self, db: Session) -> List[Badge]:
        return [Badge.model_validate(b) for b in crud_badge.get_active(db)]

    def get_user_badges(self, db: Session, user_id: int) -> List[EarnedBadge]:
        catalog = {b.code: b for b in crud_badge.get_active(db)}
        result = []
        for earned in crud_user_badge.get_for_user(db, user_id):
            entry = catalog.get(earned.badge_code)
            result.append(EarnedBadge(
                code=earned.badge_code,
                name=entry.name if entry else earned.badge_code,
                description=(entry.description if entry else None) or "",
                icon=(entry.icon if entry else None) or "",
                earned_at=earned.earned_at,
                meta=earned.meta,
            ))
        return result


badge_service = BadgeService()
