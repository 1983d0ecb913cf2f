from abc import ABC
from contextlib import contextmanager
from sqlalchemy.orm import Session

from stratix.core.logging import get_logger


class BaseService(ABC):
    """Base class for services that own a database session and its commits."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = get_logger(self.__class__.__name__)

    def commit(self):
        try:
            self.db.commit()
            self.logger.debug("Database transaction committed")
        except Exception as e:
            self.logger.error(f"Database commit failed: {str(e)}")
            self.db.rollback()
            raise

    def rollback(self):
        self.db.rollback()
        self.logger.debug("Database transaction rolled back")

    @contextmanager
    def savepoint(self):
        """Nested transaction; an exception inside undoes only this block's writes."""
        nested = self.db.begin_nested()
        try:
            yield
        except Exception:
            nested.rollback()
            raise
        else:
            nested.commit()
