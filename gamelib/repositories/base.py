"""
Generic SQLAlchemy repository.

Subclasses bind a model and add their own queries; transaction control
(save/rollback) stays here so every store commits the same way.

Example:
    class SqlLibraryStore(BaseRepository[LibraryEntry]):
        def __init__(self, db: Session):
            super().__init__(LibraryEntry, db)
"""
from typing import TypeVar, Generic, Type, Optional

from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Common reads and transaction helpers for one model.

    Attributes:
        model_type: Mapped class with an `id` primary key
        db: Session shared with the caller
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    def query(self) -> Query:
        return self.db.query(self.model_type)

    def find_by_id(self, id: str) -> Optional[T]:
        return self.query().filter(self.model_type.id == id).first()

    def filter_by_first(self, **columns) -> Optional[T]:
        """First row whose columns equal the given values, or None."""
        return self.query().filter_by(**columns).first()

    def count(self, *criterion) -> int:
        """Rows matching every criterion."""
        return self.query().filter(*criterion).count()

    def add(self, instance: T) -> T:
        self.db.add(instance)
        return instance

    def save(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
