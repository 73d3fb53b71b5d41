"""Scheduling core: due-job selection, leases, execution and recovery."""

from hunter_scheduler.scheduler.cycles import CycleSummary, HunterScheduler, SweepSummary
from hunter_scheduler.scheduler.executor import ScanExecutor, compute_next_due
from hunter_scheduler.scheduler.lease_store import LeaseStore, SqlLeaseStore
from hunter_scheduler.scheduler.rate_limiter import (
    FixedIntervalRateLimiter,
    PerPlatformRateLimiter,
    RateLimiter,
)
from hunter_scheduler.scheduler.selector import DueJobSelector
from hunter_scheduler.scheduler.sweeper import StaleLeaseSweeper
from hunter_scheduler.scheduler.units import (
    ScanOutcome,
    ScanTrigger,
    ScheduledUnit,
    UnitStatus,
)

__all__ = [
    "CycleSummary",
    "DueJobSelector",
    "FixedIntervalRateLimiter",
    "HunterScheduler",
    "LeaseStore",
    "PerPlatformRateLimiter",
    "RateLimiter",
    "ScanExecutor",
    "ScanOutcome",
    "ScanTrigger",
    "ScheduledUnit",
    "SqlLeaseStore",
    "StaleLeaseSweeper",
    "SweepSummary",
    "UnitStatus",
    "compute_next_due",
]
