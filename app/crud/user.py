from sqlalchemy.orm import Session
from typing import Dict, Iterable, List

from app.crud.base import CRUDBase
from app.models.user import User

class CRUDUser(CRUDBase[User]):

    def get_many(self, db: Session, ids: Iterable[int]) -> Dict[int, User]:
        ids = list(set(ids))
        if not ids:
            return {}
        rows = db.query(User).filter(User.id.in_(ids)).all()
        return {u.id: u for u in rows}

    def get_ids_by_batch(self, db: Session, batch: str) -> List[int]:
        rows = db.query(User.id).filter(User.batch == batch).all()
        return [row[0] for row in rows]

    def get_distinct_batches(self, db: Session) -> List[str]:
        rows = db.query(User.batch).filter(User.batch.isnot(None)).distinct().all()
        return [row[0] for row in rows if row[0]]

    def get_all_ids(self, db: Session) -> List[int]:
        return [row[0] for row in db.query(User.id).all()]


user = CRUDUser(User)
