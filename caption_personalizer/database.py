"""
Database configuration and session management.

Builds SQLAlchemy engines and session factories from a database URL, and
provides a commit/rollback context manager for the SQL-backed
personalization store. Nothing is created at import time; the caller owns
the engine (see engine.build_engine).
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .db_models import Base

logger = logging.getLogger(__name__)

_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def _redact(database_url: str) -> str:
    return database_url.split("@")[-1] if "@" in database_url else database_url


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for a database URL.

    PostgreSQL gets a connection pool; SQLite runs with foreign keys on, and
    an in-memory SQLite database is kept on a single shared connection.
    """
    logger.info(f"Database URL: {_redact(database_url)}")

    if database_url.startswith("postgresql://"):
        return create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,
            echo=False,
        )

    engine_kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
    if database_url in _MEMORY_SQLITE_URLS:
        engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_session_factory(database_url: str, create_tables: bool = True) -> sessionmaker:
    """
    Session factory bound to a new engine for database_url.

    Args:
        database_url: SQLAlchemy URL (postgresql:// or sqlite://)
        create_tables: Create missing tables on the new engine
    """
    engine = create_db_engine(database_url)
    if create_tables:
        init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind):
    """
    Initialize database - create all tables.
    Should be called on application startup.
    """
    try:
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


@contextmanager
def get_db_context(session_factory):
    """
    Context manager for database sessions.

    Usage:
        with get_db_context(session_factory) as db:
            profile = db.query(DBVoiceProfile).filter_by(user_id="42").first()
    """
    db: Session = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_database_health(session_factory) -> dict:
    """Check database connectivity."""
    try:
        with get_db_context(session_factory) as db:
            db.execute(text("SELECT 1"))

            return {
                "database_connected": True,
                "database_type": db.get_bind().dialect.name,
            }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "database_connected": False,
            "database_error": str(e),
        }
