"""Database configuration and session management."""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from maintenance_engine.config import DATABASE_URL
from maintenance_engine.core.exceptions import StoreError

logger = logging.getLogger(__name__)


def build_engine(url: str, **engine_options):
    """Create an engine with the pool settings appropriate for the backend."""
    if url.startswith("sqlite"):
        # SQLite-specific config
        engine = create_engine(url, connect_args={"check_same_thread": False}, **engine_options)
        _enable_sqlite_foreign_keys(engine)
        return engine

    # PostgreSQL config (production)
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        **engine_options
    )


def _enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for FastAPI endpoints to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_errors(db: Session, operation: str, **context):
    """Translate store failures on a read path into StoreError (after rollback)."""
    try:
        yield db
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Store failure during %s %s", operation, context, exc_info=True)
        raise StoreError(operation, cause=exc, context=context) from exc


@contextmanager
def atomic(db: Session, operation: str, **context):
    """
    Unit of work: everything staged inside the block commits together or not at all.

    Store failures are rolled back, logged with the operation context and
    re-raised as StoreError. Any other exception (NotFoundError etc.) also
    rolls back and propagates unchanged.
    """
    with store_errors(db, operation, **context):
        try:
            yield db
            db.commit()
        except SQLAlchemyError:
            raise
        except Exception:
            db.rollback()
            raise
