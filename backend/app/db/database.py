"""
Database connection and session management.
PostgreSQL engine with connection pooling, health-checked connections,
and automatic recycling.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from typing import Generator
import logging
import time

from app.core.config import settings
from app.db.models import Base

logger = logging.getLogger(__name__)

# Track database availability to avoid repeated slow connection attempts
_db_available = True  # Assume available until proven otherwise
_db_last_check = 0.0
_DB_RETRY_INTERVAL = 30  # Re-check every 30 seconds when DB is down

_connect_args = {
    "connect_timeout": 10,
    "options": f"-c statement_timeout={settings.database_statement_timeout_ms}",
}

engine = create_engine(
    settings.database_url,
    poolclass=QueuePool,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_recycle=settings.database_pool_recycle,
    pool_pre_ping=settings.database_pool_pre_ping,
    pool_timeout=30,
    echo=False,
    connect_args=_connect_args,
)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_conn, connection_record):
    """Tag connections so they are identifiable in pg_stat_activity."""
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("SET application_name = 'tour-marketplace'")
    finally:
        cursor.close()


# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def mark_unavailable() -> None:
    """Record that the database is down so get_db() yields None until the retry interval passes."""
    global _db_available, _db_last_check
    _db_available = False
    _db_last_check = time.time()


def get_db() -> Generator[Session | None, None, None]:
    """
    Dependency injection for database session.
    Yields None if the database is unavailable; routers answer 503.
    Caches unavailability status to avoid repeated slow connection attempts.
    """
    global _db_available, _db_last_check

    if not _db_available:
        now = time.time()
        if now - _db_last_check < _DB_RETRY_INTERVAL:
            yield None
            return
        _db_last_check = now

    try:
        db = SessionLocal()
    except Exception as e:
        logger.warning(f"Database unavailable: {e}")
        mark_unavailable()
        yield None
        return

    try:
        yield db
        _db_available = True
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables at startup."""
    logger.info("Initializing database schema...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema initialized")
