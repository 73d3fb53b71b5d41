"""
Database connection management for the Hunter scheduler.

A single lazily created SQLAlchemy engine and session factory per process.
SQLite is the default backend; any SQLAlchemy URL whose dialect reports
accurate rowcounts for UPDATE statements is supported.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from hunter_scheduler.config import ensure_directories, get_config, HunterConfig

logger = logging.getLogger(__name__)

# Global engine and session factory (lazy-loaded)
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for a database URL.

    SQLite connections get a busy timeout and foreign key support.
    In-memory SQLite uses a single shared connection so every session
    sees the same database.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured SQLAlchemy engine
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_path = Path(database_url[len("sqlite:///"):])
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,  # Sessions cross the event loop's executor threads
                "timeout": 30,
            },
            pool_pre_ping=True,
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_engine(config: Optional[HunterConfig] = None) -> Engine:
    """
    Initialize the global SQLAlchemy engine.

    Args:
        config: Hunter configuration (uses global if not provided)

    Returns:
        Configured SQLAlchemy engine
    """
    global _engine

    if _engine is not None:
        return _engine

    if config is None:
        config = get_config()

    if config.database_url.startswith("sqlite:///"):
        ensure_directories(config)

    _engine = build_engine(config.database_url)
    logger.debug(f"Database engine initialized: {config.database_url}")
    return _engine


def get_session_maker(config: Optional[HunterConfig] = None) -> sessionmaker:
    """
    Get or create the global session maker.

    Args:
        config: Hunter configuration (uses global if not provided)

    Returns:
        Configured session maker
    """
    global _SessionLocal

    if _SessionLocal is not None:
        return _SessionLocal

    engine = init_engine(config)
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )

    return _SessionLocal


@contextmanager
def get_db_session(config: Optional[HunterConfig] = None) -> Generator[Session, None, None]:
    """
    Get a database session context manager.

    Commits on normal exit, rolls back on error.

    Usage:
        with get_db_session() as session:
            integration = session.get(PlatformIntegration, integration_id)

    Args:
        config: Hunter configuration (uses global if not provided)

    Yields:
        SQLAlchemy Session
    """
    SessionLocal = get_session_maker(config)
    session = SessionLocal()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_tables(config: Optional[HunterConfig] = None) -> None:
    """
    Create all database tables.

    Args:
        config: Hunter configuration (uses global if not provided)
    """
    from hunter_scheduler.database.models import Base

    engine = init_engine(config)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def dispose_engine() -> None:
    """Dispose of the global engine and forget the session factory."""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
