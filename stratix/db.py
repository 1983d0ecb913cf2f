from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from contextlib import contextmanager
from stratix.core.config import settings


def enable_sqlite_savepoints(sqlite_engine: Engine) -> Engine:
    """Let SQLAlchemy issue BEGIN itself so SAVEPOINT works on pysqlite."""

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return enable_sqlite_savepoints(create_engine(url, connect_args={"check_same_thread": False}))
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def get_db_context():
    """Context manager for database sessions outside request scope."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
