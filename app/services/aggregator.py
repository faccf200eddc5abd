import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.constants import SCORE_PRECISION
from app.crud.quiz_attempt import quiz_attempt as crud_attempt
from app.schemas.leaderboard import ScopeKey, SubjectSummary
from app.services.scoring import composite_score

logger = logging.getLogger(__name__)


class AttemptAggregator:
    """Turns completed attempts into one summary per user for a scope key.

    Batch membership is not resolved here: callers pass the batch members as
    ``user_ids`` and the aggregator only applies it as a filter.
    """

    def summarize(self, user_id: int, attempts: int, mean_pct: Optional[float]) -> SubjectSummary:
        avg_score = round(float(mean_pct or 0.0), SCORE_PRECISION)
        # accuracy is the mean percentage correct until skipped questions are tracked separately
        accuracy = avg_score
        return SubjectSummary(
            user_id=user_id,
            attempts=attempts,
            avg_score=avg_score,
            accuracy=accuracy,
            composite_score=composite_score(avg_score, accuracy, attempts),
        )

    def aggregate(
        self,
        db: Session,
        scope_key: ScopeKey,
        *,
        now: Optional[datetime] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> List[SubjectSummary]:
        now = now or datetime.utcnow()
        since = scope_key.window_start(now)
        rows = crud_attempt.aggregate_completed(
            db,
            quiz_id=scope_key.quiz_id,
            since=since,
            until=now if since is not None else None,
            user_ids=user_ids,
        )
        summaries = [self.summarize(user_id, count, mean_pct) for user_id, count, mean_pct in rows if count]
        logger.debug(f"Aggregated {len(summaries)} subjects for {scope_key}")
        return summaries


attempt_aggregator = AttemptAggregator()
