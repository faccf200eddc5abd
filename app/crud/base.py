from typing import Generic, Type, TypeVar
from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite
from app.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def insert_stmt(self, db: Session):
        """INSERT supporting ``on_conflict_do_update`` / ``on_conflict_do_nothing``."""
        dialect = db.get_bind().dialect.name
        try:
            insert = _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Upserts are not supported on the {dialect} dialect")
        return insert(self.model)
