from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.core.constants import AttemptStatusEnum
from app.crud.base import CRUDBase
from app.models.quiz_attempt import QuizAttempt


class CRUDQuizAttempt(CRUDBase[QuizAttempt]):

    def _percentage(self):
        return case(
            (QuizAttempt.total_questions > 0,
             QuizAttempt.score * 100.0 / QuizAttempt.total_questions),
            else_=0.0,
        )

    def _completed(self, db: Session):
        return db.query(QuizAttempt).filter(QuizAttempt.status == AttemptStatusEnum.COMPLETED)

    def aggregate_completed(
        self,
        db: Session,
        *,
        quiz_id: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> List[tuple]:
        """Per-user (user_id, attempts, mean percentage) over completed attempts."""
        pct = self._percentage()
        query = (
            db.query(QuizAttempt.user_id, func.count(QuizAttempt.id), func.avg(pct))
            .filter(QuizAttempt.status == AttemptStatusEnum.COMPLETED)
        )
        if quiz_id is not None:
            query = query.filter(QuizAttempt.quiz_id == quiz_id)
        if since is not None:
            query = query.filter(QuizAttempt.completed_at >= since)
        if until is not None:
            query = query.filter(QuizAttempt.completed_at <= until)
        if user_ids is not None:
            query = query.filter(QuizAttempt.user_id.in_(list(user_ids)))
        return query.group_by(QuizAttempt.user_id).order_by(QuizAttempt.user_id).all()

    def count_passed(self, db: Session, user_id: int) -> int:
        return (
            self._completed(db)
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.passed.is_(True))
            .count()
        )

    def get_completion_times(self, db: Session, user_id: int, since: datetime) -> List[datetime]:
        rows = (
            db.query(QuizAttempt.completed_at)
            .filter(
                QuizAttempt.user_id == user_id,
                QuizAttempt.status == AttemptStatusEnum.COMPLETED,
                QuizAttempt.completed_at >= since,
            )
            .all()
        )
        return [row[0] for row in rows if row[0] is not None]

    def get_recent_percentages(self, db: Session, user_ids: Iterable[int], per_user: int) -> Dict[int, List[int]]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        recency = func.row_number().over(
            partition_by=QuizAttempt.user_id,
            order_by=(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc()),
        )
        recent = (
            db.query(
                QuizAttempt.user_id.label("user_id"),
                self._percentage().label("pct"),
                recency.label("recency"),
            )
            .filter(
                QuizAttempt.user_id.in_(user_ids),
                QuizAttempt.status == AttemptStatusEnum.COMPLETED,
            )
            .subquery()
        )
        rows = (
            db.query(recent.c.user_id, recent.c.pct)
            .filter(recent.c.recency <= per_user)
            .order_by(recent.c.user_id, recent.c.recency)
            .all()
        )
        sparklines: Dict[int, List[int]] = {}
        for user_id, pct in rows:
            sparklines.setdefault(user_id, []).append(int(round(pct or 0)))
        return sparklines

    def get_completed_quiz_ids(self, db: Session) -> List[int]:
        rows = (
            db.query(QuizAttempt.quiz_id)
            .filter(QuizAttempt.status == AttemptStatusEnum.COMPLETED)
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def get_pending(self, db: Session, *, ids: Optional[Iterable[int]] = None,
                    due_before: Optional[datetime] = None) -> List[QuizAttempt]:
        query = db.query(QuizAttempt).filter(QuizAttempt.status == AttemptStatusEnum.PENDING)
        if ids is not None:
            query = query.filter(QuizAttempt.id.in_(list(ids)))
        if due_before is not None:
            query = query.filter(
                QuizAttempt.release_time.isnot(None),
                QuizAttempt.release_time <= due_before,
            )
        return query.all()

    def mark_completed(self, db: Session, attempts: List[QuizAttempt]) -> None:
        for attempt in attempts:
            attempt.status = AttemptStatusEnum.COMPLETED
            attempt.release_time = None
            if attempt.completed_at is None:
                attempt.completed_at = datetime.utcnow()
            db.add(attempt)
        db.flush()


quiz_attempt = CRUDQuizAttempt(QuizAttempt)
