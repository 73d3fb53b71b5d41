"""Job lease store.

Every state transition of a platform integration that matters for
mutual exclusion is a single conditional UPDATE whose row count tells
the caller whether it won. No transition is a read-modify-write.

All SQLAlchemy failures surface as StorageError, which aborts the
current cycle.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from hunter_scheduler.database.models import PlatformIntegration, ScanLog
from hunter_scheduler.errors import StorageError
from hunter_scheduler.scheduler.units import ScanOutcome, ScheduledUnit, UnitStatus

logger = logging.getLogger(__name__)


class LeaseStore(ABC):
    """Durable store of scheduled units with atomic lease transitions."""

    @abstractmethod
    def select_due(self, now: datetime, limit: int) -> List[ScheduledUnit]:
        """Return up to `limit` units due at `now`, oldest due first."""

    @abstractmethod
    def try_acquire(
        self,
        unit_id: str,
        owner: str,
        now: datetime,
        lease_timeout: float,
        require_due: bool = True,
    ) -> Optional[ScheduledUnit]:
        """Take the lease on a unit. Returns None if the race was lost."""

    @abstractmethod
    def complete(
        self,
        unit: ScheduledUnit,
        owner: str,
        outcome: ScanOutcome,
        next_due_at: Optional[datetime],
        consecutive_failures: int,
    ) -> bool:
        """Append the outcome and release the lease in one transaction.

        Returns False if the lease had been lost before completion, in
        which case only the outcome is written.
        """

    @abstractmethod
    def recover_stale(self, now: datetime) -> int:
        """Clear every lease that expired at or before `now`."""

    @abstractmethod
    def get_unit(self, unit_id: str) -> Optional[ScheduledUnit]:
        """Snapshot a single unit."""


class SqlLeaseStore(LeaseStore):
    """Lease store backed by the platform_integrations table.

    Requires a database whose UPDATE reports an accurate row count
    (SQLite, PostgreSQL and MySQL all do).

    Example:
        store = SqlLeaseStore(get_session_maker())
        unit = store.try_acquire(unit_id, "worker-1", utcnow(), 900)
        if unit is None:
            return  # someone else has it
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        """Initialize the store.

        Args:
            session_factory: Factory producing sessions on the scheduler database
        """
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Lease store failed to {operation}: {e}")
            raise StorageError(
                f"Failed to {operation}",
                details={"error": str(e)},
            ) from e

    def select_due(self, now: datetime, limit: int) -> List[ScheduledUnit]:
        stmt = (
            select(PlatformIntegration)
            .where(
                PlatformIntegration.status == UnitStatus.ACTIVE.value,
                PlatformIntegration.next_due_at <= now,
                or_(
                    PlatformIntegration.locked_at.is_(None),
                    PlatformIntegration.lease_expires_at <= now,
                ),
            )
            .order_by(PlatformIntegration.next_due_at, PlatformIntegration.id)
            .limit(limit)
        )
        with self._transaction("select due units") as session:
            rows = session.execute(stmt).scalars().all()
            return [ScheduledUnit.from_model(row) for row in rows]

    def try_acquire(
        self,
        unit_id: str,
        owner: str,
        now: datetime,
        lease_timeout: float,
        require_due: bool = True,
    ) -> Optional[ScheduledUnit]:
        conditions = [
            PlatformIntegration.id == unit_id,
            PlatformIntegration.status == UnitStatus.ACTIVE.value,
            or_(
                PlatformIntegration.locked_at.is_(None),
                PlatformIntegration.lease_expires_at <= now,
            ),
        ]
        if require_due:
            # A unit completed by another worker in this due period is no
            # longer due even though its lease is free.
            conditions.append(PlatformIntegration.next_due_at <= now)

        stmt = (
            update(PlatformIntegration)
            .where(*conditions)
            .values(
                lease_owner=owner,
                locked_at=now,
                lease_expires_at=now + timedelta(seconds=lease_timeout),
            )
            .execution_options(synchronize_session=False)
        )

        with self._transaction(f"acquire lease on {unit_id}") as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                return None
            row = session.get(PlatformIntegration, unit_id)
            return ScheduledUnit.from_model(row)

    def complete(
        self,
        unit: ScheduledUnit,
        owner: str,
        outcome: ScanOutcome,
        next_due_at: Optional[datetime],
        consecutive_failures: int,
    ) -> bool:
        values = {
            "lease_owner": None,
            "locked_at": None,
            "lease_expires_at": None,
        }
        # next_due_at of None means release only (dry runs)
        if next_due_at is not None:
            values.update(
                next_due_at=next_due_at,
                last_run_at=outcome.ended_at,
                last_success=outcome.success,
                consecutive_failures=consecutive_failures,
                last_error=None if outcome.success else outcome.error_message,
                total_scans=PlatformIntegration.total_scans + 1,
                successful_scans=PlatformIntegration.successful_scans + int(outcome.success),
                failed_scans=PlatformIntegration.failed_scans + int(not outcome.success),
                total_items_found=PlatformIntegration.total_items_found + outcome.items_found,
            )

        stmt = (
            update(PlatformIntegration)
            .where(
                PlatformIntegration.id == unit.id,
                PlatformIntegration.lease_owner == owner,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        with self._transaction(f"record outcome for {unit.id}") as session:
            session.add(ScanLog(
                integration_id=outcome.integration_id,
                project_id=outcome.project_id,
                platform_type=outcome.platform_type,
                trigger=outcome.trigger.value,
                success=outcome.success,
                items_found=outcome.items_found,
                items_stored=outcome.items_stored,
                items_duplicates=outcome.items_duplicates,
                error_message=outcome.error_message,
                started_at=outcome.started_at,
                ended_at=outcome.ended_at,
                duration_ms=outcome.duration_ms,
                lease_owner=owner,
            ))
            result = session.execute(stmt)
            released = result.rowcount > 0

        if not released:
            logger.warning(
                f"Lease on {unit.id} was lost before completion; "
                "outcome recorded, schedule left to the new owner"
            )
        return released

    def recover_stale(self, now: datetime) -> int:
        stmt = (
            update(PlatformIntegration)
            .where(
                PlatformIntegration.locked_at.is_not(None),
                PlatformIntegration.lease_expires_at <= now,
            )
            .values(lease_owner=None, locked_at=None, lease_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        with self._transaction("recover stale leases") as session:
            return session.execute(stmt).rowcount

    def get_unit(self, unit_id: str) -> Optional[ScheduledUnit]:
        with self._transaction(f"load unit {unit_id}") as session:
            row = session.get(PlatformIntegration, unit_id)
            return ScheduledUnit.from_model(row) if row else None
