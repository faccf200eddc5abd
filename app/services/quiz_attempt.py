import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.crud.quiz_attempt import quiz_attempt as crud_attempt
from app.models.quiz_attempt import QuizAttempt
from app.schemas.quiz_attempt import AttemptReleaseResult, AttemptSummary
from app.services.rebuild import rebuild_dispatcher

logger = logging.getLogger(__name__)


class QuizAttemptService:

    def on_attempt_completed(self, attempt: AttemptSummary) -> None:
        """Entry point for the attempt-recording side.

        Rankings and badges are refreshed in the background; this returns
        immediately and never raises because of ranking work.
        """
        try:
            rebuild_dispatcher.on_attempt_completed(attempt)
        except RuntimeError as e:
            # raised once the interpreter is shutting down
            logger.error(f"Could not dispatch ranking work for user {attempt.user_id}: {e}")

    def release_pending_attempts(self, db: Session, attempt_ids: Iterable[int]) -> AttemptReleaseResult:
        attempt_ids = list(attempt_ids)
        pending = crud_attempt.get_pending(db, ids=attempt_ids)
        released = self._release(db, pending)
        return AttemptReleaseResult(matched=len(pending), released=len(released))

    def release_due_attempts(self, db: Session, now: Optional[datetime] = None) -> int:
        due = crud_attempt.get_pending(db, due_before=now or datetime.utcnow())
        return len(self._release(db, due))

    def _release(self, db: Session, attempts: List[QuizAttempt]) -> List[QuizAttempt]:
        if not attempts:
            return []
        crud_attempt.mark_completed(db, attempts)
        db.commit()
        logger.info(f"Released {len(attempts)} pending attempts")

        for attempt in attempts:
            self.on_attempt_completed(AttemptSummary.model_validate(attempt))
        return attempts


quiz_attempt_service = QuizAttemptService()
