"""
Database configuration and connection handling.

PostgreSQL in production, SQLite for local runs and tests.
Set USE_DATABASE=false to start the API without opening a connection.
"""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import config
from .models import Base

logger = logging.getLogger(__name__)

USE_DATABASE = config.USE_DATABASE
DATABASE_URL = config.DATABASE_URL

# Global engine instance
engine: Optional[Engine] = None
SessionLocal = None


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with the pool settings appropriate for the backend."""
    engine_kwargs = {"echo": echo}

    if database_url.startswith("sqlite"):
        # SQLite: thread-safe access for FastAPI workers.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            # A single shared connection, otherwise every checkout sees an empty database.
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True
    else:
        # PostgreSQL mode.
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10
        engine_kwargs["pool_recycle"] = 3600  # Recycle connections after 1 hour

    return create_engine(database_url, **engine_kwargs)


def init_engine(database_url: Optional[str] = None) -> Optional[Engine]:
    """Initialize database engine if database is enabled."""
    global engine, SessionLocal

    if not USE_DATABASE:
        logger.info("Database is disabled (USE_DATABASE=false)")
        return None

    url = database_url or DATABASE_URL
    try:
        new_engine = build_engine(url, echo=config.SQLALCHEMY_ECHO)

        # Test connection
        with new_engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        engine = new_engine
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        logger.info(f"Database connected: {url.split('@')[-1]}")
        return engine

    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        engine = None
        SessionLocal = None
        return None


def is_database_available() -> bool:
    """Check if database is available for use."""
    if not USE_DATABASE or engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database session.

    Usage: db: Session = Depends(get_db)
    """
    if SessionLocal is None:
        raise RuntimeError("Database is not available")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables (for initial setup)."""
    if engine is not None:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")


def drop_tables():
    """Drop all tables (use with caution!)."""
    if engine is not None:
        Base.metadata.drop_all(bind=engine)
        logger.info("Database tables dropped")
