from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.badge import Badge, UserBadge


class CRUDBadge(CRUDBase[Badge]):

    def upsert_defaults(self, db: Session, defaults: List[Dict[str, Any]]) -> None:
        """Insert or refresh catalog entries by code; an existing ``active`` flag is left alone."""
        stmt = self.insert_stmt(db).values([{**b, "active": True} for b in defaults])
        stmt = stmt.on_conflict_do_update(
            index_elements=["code"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
            },
        )
        db.execute(stmt)

    def get_by_code(self, db: Session, code: str) -> Optional[Badge]:
        return db.query(Badge).filter(Badge.code == code).first()

    def get_active(self, db: Session) -> List[Badge]:
        return db.query(Badge).filter(Badge.active.is_(True)).order_by(Badge.id).all()


class CRUDUserBadge(CRUDBase[UserBadge]):

    def award(self, db: Session, *, user_id: int, badge_code: str, meta: Dict[str, Any],
              earned_at: Optional[datetime] = None) -> bool:
        """Record the badge once; returns False when it was already earned."""
        stmt = self.insert_stmt(db).values(
            user_id=user_id,
            badge_code=badge_code,
            earned_at=earned_at or datetime.utcnow(),
            meta=meta,
        ).on_conflict_do_nothing(index_elements=["user_id", "badge_code"])
        result = db.execute(stmt)
        return result.rowcount > 0

    def get_for_user(self, db: Session, user_id: int) -> List[UserBadge]:
        return (
            db.query(UserBadge)
            .filter(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
            .all()
        )

    def get_for_users(self, db: Session, user_ids: Iterable[int]) -> List[UserBadge]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return (
            db.query(UserBadge)
            .filter(UserBadge.user_id.in_(user_ids))
            .order_by(UserBadge.earned_at.asc(), UserBadge.id.asc())
            .all()
        )

    def has(self, db: Session, user_id: int, badge_code: str) -> bool:
        return db.query(
            db.query(UserBadge)
            .filter(UserBadge.user_id == user_id, UserBadge.badge_code == badge_code)
            .exists()
        ).scalar()


badge = CRUDBadge(Badge)
user_badge = CRUDUserBadge(UserBadge)
