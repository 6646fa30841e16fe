import logging
from typing import Dict, List, Mapping, Sequence, Type

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.db import Base, make_session_factory
from app.core.errors import StorageIOFailure
from app.storage.base import TableBackend

logger = logging.getLogger(__name__)


class SqlTable(TableBackend):
    """A table mapped onto one SQLAlchemy model; rows are ordered by primary key."""

    def __init__(self, engine: Engine, model: Type[Base], fields: Sequence[str]):
        super().__init__(fields)
        self.engine = engine
        self.model = model
        self.SessionLocal = make_session_factory(engine)

    def initialize(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine, tables=[self.model.__table__])
        except SQLAlchemyError as e:
            raise StorageIOFailure(f"Could not create table {self.model.__tablename__}: {e}") from e

    def _to_dict(self, record) -> Dict[str, str]:
        return {name: getattr(record, name) or "" for name in self.fields}

    def load_all(self) -> List[Dict[str, str]]:
        try:
            with self.SessionLocal() as db:
                records = db.query(self.model).order_by(self.model.id).all()
                return [self._to_dict(record) for record in records]
        except SQLAlchemyError as e:
            raise StorageIOFailure(f"Could not read {self.model.__tablename__}: {e}") from e

    def append(self, row: Mapping[str, str]) -> None:
        try:
            with self.SessionLocal() as db:
                db.add(self.model(**self._project(row)))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageIOFailure(f"Could not append to {self.model.__tablename__}: {e}") from e

    def save_all(self, rows: Sequence[Mapping[str, str]]) -> None:
        try:
            with self.SessionLocal() as db:
                try:
                    db.query(self.model).delete()
                    db.add_all([self.model(**self._project(row)) for row in rows])
                    db.commit()
                except Exception:
                    db.rollback()
                    raise
        except SQLAlchemyError as e:
            raise StorageIOFailure(f"Could not write {self.model.__tablename__}: {e}") from e

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
