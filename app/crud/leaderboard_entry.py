from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.leaderboard_entry import LeaderboardEntry
from app.schemas.leaderboard import ScopeKey, SubjectSummary

# keeps multi-row statements under SQLite's bound parameter limit
CHUNK_SIZE = 500


def _chunks(items: list):
    for start in range(0, len(items), CHUNK_SIZE):
        yield items[start:start + CHUNK_SIZE]


class CRUDLeaderboardEntry(CRUDBase[LeaderboardEntry]):

    def _for_scope(self, db: Session, scope_key: ScopeKey):
        return db.query(LeaderboardEntry).filter(LeaderboardEntry.scope_id == scope_key.scope_id)

    def _ranked(self, db: Session, scope_key: ScopeKey):
        return self._for_scope(db, scope_key).order_by(
            LeaderboardEntry.composite_score.desc(),
            LeaderboardEntry.updated_at.asc(),
            LeaderboardEntry.user_id.asc(),
        )

    def replace_scope(
        self, db: Session, scope_key: ScopeKey, summaries: List[SubjectSummary], updated_at: datetime
    ) -> int:
        """Make the stored rows for ``scope_key`` match ``summaries`` exactly.

        Rows of subjects missing from ``summaries`` are deleted, the rest are
        upserted on (user_id, scope_id). Both happen in user_id order so
        concurrent rebuilds of one scope lock rows in the same order. Does not
        commit.
        """
        existing = {
            row[0] for row in self._for_scope(db, scope_key).with_entities(LeaderboardEntry.user_id)
        }
        stale_ids = sorted(existing - {s.user_id for s in summaries})
        for chunk in _chunks(stale_ids):
            (
                self._for_scope(db, scope_key)
                .filter(LeaderboardEntry.user_id.in_(chunk))
                .delete(synchronize_session=False)
            )

        rows = [
            {
                "user_id": s.user_id,
                "scope_id": scope_key.scope_id,
                "scope": scope_key.scope,
                "scope_ref": scope_key.scope_ref,
                "quiz_id": scope_key.quiz_id,
                "period": scope_key.period,
                "avg_score": s.avg_score,
                "accuracy": s.accuracy,
                "attempts": s.attempts,
                "composite_score": s.composite_score,
                "updated_at": updated_at,
            }
            for s in sorted(summaries, key=lambda s: s.user_id)
        ]
        for chunk in _chunks(rows):
            stmt = self.insert_stmt(db).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "scope_id"],
                set_={
                    "avg_score": stmt.excluded.avg_score,
                    "accuracy": stmt.excluded.accuracy,
                    "attempts": stmt.excluded.attempts,
                    "composite_score": stmt.excluded.composite_score,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            db.execute(stmt)
        return len(rows)

    def top_n(self, db: Session, scope_key: ScopeKey, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        query = self._ranked(db, scope_key)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def has(self, db: Session, scope_key: ScopeKey) -> bool:
        return db.query(self._for_scope(db, scope_key).exists()).scalar()

    def count(self, db: Session, scope_key: ScopeKey) -> int:
        return self._for_scope(db, scope_key).count()

    def get_ranked_user_ids(self, db: Session, scope_key: ScopeKey, limit: int) -> List[int]:
        rows = (
            self._ranked(db, scope_key)
            .with_entities(LeaderboardEntry.user_id)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]


leaderboard_entry = CRUDLeaderboardEntry(LeaderboardEntry)
