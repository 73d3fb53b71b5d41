"""Database repositories for the Hunter scheduler.

CRUD access to integrations and read access to the scan log, used by the
CLI and the daemon. Lease transitions deliberately live elsewhere, in
hunter_scheduler.scheduler.lease_store, because they must be expressed as
conditional updates rather than read-modify-write.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Dict, Any

from sqlalchemy import desc
from sqlalchemy.orm import Session

from hunter_scheduler.database.models import PlatformIntegration, ScanLog, utcnow

INTEGRATION_STATUSES = ("active", "paused", "disabled")


class IntegrationRepository:
    """
    Repository for platform integrations.

    Integrations are created and deleted by tenants; the scheduler only
    mutates lease and outcome columns through the lease store.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session
        """
        self.session = session

    def create(
        self,
        project_id: str,
        platform_type: str,
        config: Optional[Dict[str, Any]] = None,
        scan_frequency_minutes: int = 15,
        status: str = "active",
        next_due_at: Optional[datetime] = None,
    ) -> PlatformIntegration:
        """
        Create a new integration.

        A new integration is due immediately unless next_due_at is given.

        Args:
            project_id: Owning project
            platform_type: Platform discriminator (e.g. "reddit")
            config: Platform-specific strategy parameters
            scan_frequency_minutes: Base cadence in minutes
            status: Initial status
            next_due_at: First due time

        Returns:
            Created PlatformIntegration instance
        """
        if status not in INTEGRATION_STATUSES:
            raise ValueError(f"Invalid status '{status}'")
        if config is not None and not isinstance(config, dict):
            raise ValueError("config must be a JSON object")
        if scan_frequency_minutes <= 0:
            raise ValueError("scan_frequency_minutes must be positive")

        integration = PlatformIntegration(
            project_id=project_id,
            platform_type=platform_type,
            config=config or {},
            scan_frequency_minutes=scan_frequency_minutes,
            status=status,
            next_due_at=next_due_at or utcnow(),
        )
        self.session.add(integration)
        self.session.commit()
        self.session.refresh(integration)
        return integration

    def get_by_id(self, integration_id: str) -> Optional[PlatformIntegration]:
        """
        Get an integration by ID.

        Args:
            integration_id: Integration ID

        Returns:
            PlatformIntegration if found, None otherwise
        """
        return self.session.get(PlatformIntegration, integration_id)

    def find_by_prefix(self, prefix: str) -> List[PlatformIntegration]:
        """
        Find integrations whose ID starts with a prefix.

        Args:
            prefix: Leading characters of the integration ID

        Returns:
            Matching integrations
        """
        return self.session.query(PlatformIntegration).filter(
            PlatformIntegration.id.startswith(prefix)
        ).all()

    def get_all(
        self,
        status: Optional[str] = None,
        platform_type: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> List[PlatformIntegration]:
        """
        List integrations, optionally filtered.

        Args:
            status: Filter by status
            platform_type: Filter by platform
            project_id: Filter by project

        Returns:
            Integrations ordered by next due time
        """
        query = self.session.query(PlatformIntegration)
        if status:
            query = query.filter(PlatformIntegration.status == status)
        if platform_type:
            query = query.filter(PlatformIntegration.platform_type == platform_type)
        if project_id:
            query = query.filter(PlatformIntegration.project_id == project_id)
        return query.order_by(
            PlatformIntegration.next_due_at, PlatformIntegration.id
        ).all()

    def set_status(self, integration_id: str, status: str) -> Optional[PlatformIntegration]:
        """
        Change an integration's status.

        Resuming (setting active) leaves next_due_at alone, so an
        integration that was paused past its due time runs on the next cycle.

        Args:
            integration_id: Integration ID
            status: New status

        Returns:
            Updated PlatformIntegration or None if not found
        """
        if status not in INTEGRATION_STATUSES:
            raise ValueError(f"Invalid status '{status}'")

        integration = self.get_by_id(integration_id)
        if not integration:
            return None

        integration.status = status
        self.session.commit()
        self.session.refresh(integration)
        return integration

    def update_config(
        self,
        integration_id: str,
        config: Optional[Dict[str, Any]] = None,
        scan_frequency_minutes: Optional[int] = None,
    ) -> Optional[PlatformIntegration]:
        """
        Update an integration's tenant-owned settings.

        Args:
            integration_id: Integration ID
            config: Replacement strategy parameters
            scan_frequency_minutes: Replacement cadence

        Returns:
            Updated PlatformIntegration or None if not found
        """
        integration = self.get_by_id(integration_id)
        if not integration:
            return None

        if config is not None:
            if not isinstance(config, dict):
                raise ValueError("config must be a JSON object")
            integration.config = config
        if scan_frequency_minutes is not None:
            if scan_frequency_minutes <= 0:
                raise ValueError("scan_frequency_minutes must be positive")
            integration.scan_frequency_minutes = scan_frequency_minutes

        self.session.commit()
        self.session.refresh(integration)
        return integration

    def delete(self, integration_id: str) -> bool:
        """
        Delete an integration.

        Args:
            integration_id: Integration ID

        Returns:
            True if deleted, False if not found
        """
        integration = self.get_by_id(integration_id)
        if not integration:
            return False

        self.session.delete(integration)
        self.session.commit()
        return True


class ScanLogRepository:
    """
    Read access to the append-only scan log.

    Rows are written by the lease store together with the lease release;
    this repository has no update method.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_history(
        self,
        integration_id: Optional[str] = None,
        project_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[ScanLog]:
        """
        Get scan history.

        Args:
            integration_id: Filter by integration (optional)
            project_id: Filter by project (optional)
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            Scan logs ordered by started_at descending
        """
        query = self.session.query(ScanLog).order_by(
            desc(ScanLog.started_at), desc(ScanLog.id)
        )

        if integration_id:
            query = query.filter(ScanLog.integration_id == integration_id)
        if project_id:
            query = query.filter(ScanLog.project_id == project_id)

        return query.offset(offset).limit(limit).all()

    def get_success_count(self, integration_id: Optional[str] = None) -> int:
        """Count successful scans, optionally for one integration."""
        query = self.session.query(ScanLog).filter(ScanLog.success.is_(True))
        if integration_id:
            query = query.filter(ScanLog.integration_id == integration_id)
        return query.count()

    def get_failure_count(self, integration_id: Optional[str] = None) -> int:
        """Count failed scans, optionally for one integration."""
        query = self.session.query(ScanLog).filter(ScanLog.success.is_(False))
        if integration_id:
            query = query.filter(ScanLog.integration_id == integration_id)
        return query.count()

    def delete_old(self, before: datetime) -> int:
        """
        Delete scan logs older than a given time.

        Retention is the one exception to append-only: whole rows age out,
        no row is ever modified.

        Args:
            before: Delete logs started before this time

        Returns:
            Number of logs deleted
        """
        result = self.session.query(ScanLog).filter(
            ScanLog.started_at < before
        ).delete(synchronize_session=False)
        self.session.commit()
        return result


class RepositoryFactory:
    """
    Factory for creating repository instances.

    Usage:
        with get_db_session() as session:
            repos = RepositoryFactory(session)
            integrations = repos.integrations.get_all()
    """

    def __init__(self, session: Session):
        self.session = session
        self._integrations: Optional[IntegrationRepository] = None
        self._scan_logs: Optional[ScanLogRepository] = None

    @property
    def integrations(self) -> IntegrationRepository:
        """Get integration repository."""
        if self._integrations is None:
            self._integrations = IntegrationRepository(self.session)
        return self._integrations

    @property
    def scan_logs(self) -> ScanLogRepository:
        """Get scan log repository."""
        if self._scan_logs is None:
            self._scan_logs = ScanLogRepository(self.session)
        return self._scan_logs
