"""
SQLAlchemy models for the Hunter scheduler database.

Two tables:
- platform_integrations: one schedulable unit per (project, platform),
  carrying cadence, lease state and the outcome cache
- scan_logs: append-only record of every execution attempt
"""

from datetime import datetime, timezone
from typing import Optional, Any, Dict
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, declarative_base

# Create base class for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class PlatformIntegration(Base):
    """
    Platform integration model.

    One tenant's recurring collection job for one external platform.

    Lease columns (lease_owner, locked_at, lease_expires_at) are written only
    through conditional updates in the lease store; everything else in the
    outcome cache is owned by the current lease holder.
    """

    __tablename__ = "platform_integrations"
    __table_args__ = (
        UniqueConstraint("project_id", "platform_type", name="uq_integration_project_platform"),
        CheckConstraint("scan_frequency_minutes > 0", name="ck_integration_scan_frequency_positive"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    project_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    platform_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Platform-specific parameters passed to the strategy
    config: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    # active, paused, disabled
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)

    # Cadence
    scan_frequency_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    next_due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Lease
    lease_owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    lease_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Outcome cache
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Statistics
    total_scans: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_scans: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_scans: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_items_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert integration to dictionary representation."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "platform_type": self.platform_type,
            "config": self.config,
            "status": self.status,
            "scan_frequency_minutes": self.scan_frequency_minutes,
            "next_due_at": _isoformat(self.next_due_at),
            "lease_owner": self.lease_owner,
            "locked_at": _isoformat(self.locked_at),
            "lease_expires_at": _isoformat(self.lease_expires_at),
            "last_run_at": _isoformat(self.last_run_at),
            "last_success": self.last_success,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "total_scans": self.total_scans,
            "successful_scans": self.successful_scans,
            "failed_scans": self.failed_scans,
            "total_items_found": self.total_items_found,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class ScanLog(Base):
    """
    Scan log model.

    Immutable audit record of one execution attempt. Rows are inserted
    once and never updated.
    """

    __tablename__ = "scan_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # No foreign key: history outlives deleted integrations
    integration_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    platform_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # scheduled, manual, test
    trigger: Mapped[str] = mapped_column(String(16), default="scheduled", nullable=False)

    # Results
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    items_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_stored: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_duplicates: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    lease_owner: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert scan log to dictionary representation."""
        return {
            "id": self.id,
            "integration_id": self.integration_id,
            "project_id": self.project_id,
            "platform_type": self.platform_type,
            "trigger": self.trigger,
            "success": self.success,
            "items_found": self.items_found,
            "items_stored": self.items_stored,
            "items_duplicates": self.items_duplicates,
            "error_message": self.error_message,
            "started_at": _isoformat(self.started_at),
            "ended_at": _isoformat(self.ended_at),
            "duration_ms": self.duration_ms,
            "lease_owner": self.lease_owner,
        }


# Due-job selection scans active units by due time
Index(
    "ix_platform_integrations_due",
    PlatformIntegration.status,
    PlatformIntegration.next_due_at,
)
Index("ix_scan_logs_started_at", ScanLog.started_at.desc())
