# backend/carteira/database.py
"""
Database connection and session management.

This module configures SQLAlchemy with:
- StaticPool for in-memory SQLite (tests)
- Plain file-backed SQLite or a pooled server database otherwise
- Table creation (no migrations)
- Health check capabilities
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import settings
from .models import Base

logger = logging.getLogger(__name__)


def _create_engine():
    """
    Create SQLAlchemy engine with environment-appropriate configuration.

    - In-memory SQLite: StaticPool so every session sees the same database
    - File SQLite: check_same_thread disabled for background jobs
    - Anything else: pre-ping pooled connections
    """
    url = settings.database_url

    if settings.is_sqlite:
        if ":memory:" in url:
            logger.info("Configuring in-memory SQLite database")
            return create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.debug,
            )

        logger.info(f"Configuring SQLite database at {url}")
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info("Configuring pooled database connection")
    return create_engine(url, pool_pre_ping=True, echo=settings.debug)


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def get_db() -> Generator[Session, None, None]:
    """
    Provide a database session that auto-closes after use.

    Usage:
        db = next(get_db())
    or as a contextlib.contextmanager-wrapped dependency in callers.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns:
        dict: Health status with database kind
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "sqlite" if settings.is_sqlite else "server",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }
