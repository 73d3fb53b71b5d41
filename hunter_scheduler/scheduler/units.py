"""Domain types shared by the selector, executor, sweeper and strategies.

ScheduledUnit is a detached snapshot of a platform integration row; the
scheduler never holds ORM objects across an await.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

# Returns the current naive UTC time
Clock = Callable[[], datetime]


class UnitStatus(str, Enum):
    """Status of a platform integration."""

    ACTIVE = "active"
    PAUSED = "paused"
    DISABLED = "disabled"


class ScanTrigger(str, Enum):
    """What caused an execution attempt."""

    SCHEDULED = "scheduled"  # Picked up by the scan cycle
    MANUAL = "manual"  # Operator-initiated, ignores next_due_at
    TEST = "test"  # Dry run from the CLI


@dataclass
class ScheduledUnit:
    """One tenant's recurring collection job for one platform.

    Attributes:
        id: Integration ID
        project_id: Owning project
        platform_type: Strategy discriminator
        scan_frequency: Base cadence
        next_due_at: When the unit next becomes due
        status: active, paused or disabled
        config: Opaque strategy parameters
        lease_owner: Worker holding the lease, if any
        locked_at: When the lease was taken
        lease_expires_at: When the lease lapses
        last_run_at: When the last attempt completed
        last_success: Whether the last attempt succeeded
        consecutive_failures: Failures since the last success
    """

    id: str
    project_id: str
    platform_type: str
    scan_frequency: timedelta
    next_due_at: datetime
    status: UnitStatus = UnitStatus.ACTIVE
    config: Any = field(default_factory=dict)
    lease_owner: Optional[str] = None
    locked_at: Optional[datetime] = None
    lease_expires_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    last_success: Optional[bool] = None
    consecutive_failures: int = 0

    def is_leased(self, now: datetime) -> bool:
        """Whether a non-expired lease is held on the unit."""
        return (
            self.locked_at is not None
            and self.lease_expires_at is not None
            and self.lease_expires_at > now
        )

    def is_due(self, now: datetime) -> bool:
        """Whether the unit is eligible for the scan cycle at `now`."""
        return (
            self.status == UnitStatus.ACTIVE
            and self.next_due_at <= now
            and not self.is_leased(now)
        )

    @classmethod
    def from_model(cls, row: Any) -> "ScheduledUnit":
        """Snapshot a PlatformIntegration row."""
        return cls(
            id=row.id,
            project_id=row.project_id,
            platform_type=row.platform_type,
            scan_frequency=timedelta(minutes=row.scan_frequency_minutes),
            next_due_at=row.next_due_at,
            status=UnitStatus(row.status),
            config=dict(row.config) if isinstance(row.config, dict) else row.config,
            lease_owner=row.lease_owner,
            locked_at=row.locked_at,
            lease_expires_at=row.lease_expires_at,
            last_run_at=row.last_run_at,
            last_success=row.last_success,
            consecutive_failures=row.consecutive_failures,
        )


@dataclass(frozen=True)
class ScanOutcome:
    """Immutable record of one execution attempt."""

    integration_id: str
    project_id: str
    platform_type: str
    trigger: ScanTrigger
    success: bool
    started_at: datetime
    ended_at: datetime
    items_found: int = 0
    items_stored: int = 0
    items_duplicates: int = 0
    error_message: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "integration_id": self.integration_id,
            "project_id": self.project_id,
            "platform_type": self.platform_type,
            "trigger": self.trigger.value,
            "success": self.success,
            "items_found": self.items_found,
            "items_stored": self.items_stored,
            "items_duplicates": self.items_duplicates,
            "error": self.error_message,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_ms": self.duration_ms,
        }
