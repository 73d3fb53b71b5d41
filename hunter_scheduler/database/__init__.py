"""Persistence layer: SQLAlchemy models, connection management and repositories."""

from hunter_scheduler.database.connection import (
    build_engine,
    create_tables,
    dispose_engine,
    get_db_session,
    get_session_maker,
    init_engine,
)
from hunter_scheduler.database.models import Base, PlatformIntegration, ScanLog, utcnow
from hunter_scheduler.database.repositories import (
    IntegrationRepository,
    RepositoryFactory,
    ScanLogRepository,
)

__all__ = [
    "Base",
    "PlatformIntegration",
    "ScanLog",
    "utcnow",
    "build_engine",
    "create_tables",
    "dispose_engine",
    "get_db_session",
    "get_session_maker",
    "init_engine",
    "IntegrationRepository",
    "RepositoryFactory",
    "ScanLogRepository",
]
