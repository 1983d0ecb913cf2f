from abc import ABC
from typing import TypeVar, Generic, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, func
import uuid

ModelType = TypeVar("ModelType")


class BaseRepository(ABC, Generic[ModelType]):
    """Base repository with common persistence operations.

    Repositories only flush; the owning service decides when to commit.
    """

    def __init__(self, db: Session, model: type[ModelType]):
        self.db = db
        self.model = model

    @staticmethod
    def _gen_id(prefix: str) -> str:
        """Generate unique ID with prefix."""
        return f"{prefix}_{uuid.uuid4()}"

    def get(self, id: str) -> Optional[ModelType]:
        """Get a single record by ID."""
        return self.db.execute(
            select(self.model).where(self.model.id == id)
        ).scalar_one_or_none()

    def count(self, *conditions) -> int:
        query = select(func.count()).select_from(self.model)
        if conditions:
            query = query.where(*conditions)
        return self.db.execute(query).scalar_one()

    def add(self, db_obj: ModelType) -> ModelType:
        self.db.add(db_obj)
        self.db.flush()
        return db_obj
