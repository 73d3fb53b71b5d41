"""Scheduler entry points.

HunterScheduler wires the selector, executor, rate limiter and sweeper
together and exposes the two cycles an external timer calls:

    run_scan_cycle()      - select due units and execute them
    run_recovery_sweep()  - release expired leases

The cycles own no timers. The daemon, the HTTP trigger and the CLI
decide when they run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from hunter_scheduler.database.models import utcnow
from hunter_scheduler.errors import NotFoundError, ValidationError
from hunter_scheduler.scheduler.executor import (
    DEFAULT_LEASE_TIMEOUT,
    DEFAULT_MAX_BACKOFF_MULTIPLIER,
    DEFAULT_SCAN_TIMEOUT,
    ScanExecutor,
)
from hunter_scheduler.scheduler.lease_store import LeaseStore, SqlLeaseStore
from hunter_scheduler.scheduler.rate_limiter import (
    DEFAULT_MIN_INTERVAL,
    FixedIntervalRateLimiter,
    PerPlatformRateLimiter,
    RateLimiter,
)
from hunter_scheduler.scheduler.selector import DEFAULT_BATCH_CAP, DueJobSelector
from hunter_scheduler.scheduler.sweeper import StaleLeaseSweeper
from hunter_scheduler.scheduler.units import (
    Clock,
    ScanOutcome,
    ScanTrigger,
    ScheduledUnit,
    UnitStatus,
)
from hunter_scheduler.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class CycleSummary:
    """Result of one scan cycle."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    selected: int = 0
    scanned: int = 0
    skipped: int = 0
    succeeded: int = 0
    failed: int = 0
    items_found: int = 0
    items_stored: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, outcome: Optional[ScanOutcome]) -> None:
        """Count one unit's attempt. None means the lease race was lost."""
        if outcome is None:
            self.skipped += 1
            return

        self.scanned += 1
        if outcome.success:
            self.succeeded += 1
        else:
            self.failed += 1
        self.items_found += outcome.items_found
        self.items_stored += outcome.items_stored
        self.results.append({
            "integration_id": outcome.integration_id,
            "project_id": outcome.project_id,
            "platform_type": outcome.platform_type,
            "success": outcome.success,
            "items_found": outcome.items_found,
            "items_stored": outcome.items_stored,
            "error": outcome.error_message,
        })

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "selected": self.selected,
            "scanned": self.scanned,
            "skipped": self.skipped,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "items_found": self.items_found,
            "items_stored": self.items_stored,
            "results": list(self.results),
        }


@dataclass
class SweepSummary:
    """Result of one recovery sweep."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    recovered: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "recovered": self.recovered,
        }


class HunterScheduler:
    """Entry points for the scan cycle and the recovery sweep.

    Example:
        scheduler = HunterScheduler.from_config(get_config())
        summary = await scheduler.run_scan_cycle()
        print(f"{summary.succeeded}/{summary.scanned} succeeded")
    """

    def __init__(
        self,
        store: LeaseStore,
        registry: StrategyRegistry,
        worker_id: str,
        batch_cap: int = DEFAULT_BATCH_CAP,
        lease_timeout: float = DEFAULT_LEASE_TIMEOUT,
        scan_timeout: float = DEFAULT_SCAN_TIMEOUT,
        throttle_interval: float = DEFAULT_MIN_INTERVAL,
        max_backoff_multiplier: int = DEFAULT_MAX_BACKOFF_MULTIPLIER,
        parallel_platforms: bool = False,
        clock: Clock = utcnow,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Lease store holding the units
            registry: Strategy registry
            worker_id: Lease owner identity for this process
            batch_cap: Maximum units per scan cycle
            lease_timeout: Lease duration in seconds
            scan_timeout: Deadline for one scan in seconds
            throttle_interval: Minimum seconds between external calls
            max_backoff_multiplier: Upper bound on failure backoff
            parallel_platforms: Run different platforms concurrently
            clock: Source of the current naive UTC time
            rate_limiter: Limiter to use instead of the default one
            sleep: Sleep function for the default limiter
        """
        if batch_cap <= 0:
            raise ValueError("batch_cap must be positive")

        self.store = store
        self.registry = registry
        self.worker_id = worker_id
        self.batch_cap = batch_cap
        self.parallel_platforms = parallel_platforms
        self._clock = clock

        if rate_limiter is None:
            limiter_class = PerPlatformRateLimiter if parallel_platforms else FixedIntervalRateLimiter
            kwargs: Dict[str, Any] = {"sleep": sleep} if sleep else {}
            rate_limiter = limiter_class(throttle_interval, **kwargs)
        self.rate_limiter = rate_limiter

        self.selector = DueJobSelector(store, clock=clock)
        self.executor = ScanExecutor(
            store,
            registry,
            worker_id,
            lease_timeout=lease_timeout,
            scan_timeout=scan_timeout,
            max_backoff_multiplier=max_backoff_multiplier,
            clock=clock,
        )
        self.sweeper = StaleLeaseSweeper(store, clock=clock)

    @classmethod
    def from_config(
        cls,
        config: Optional[Any] = None,
        registry: Optional[StrategyRegistry] = None,
        store: Optional[LeaseStore] = None,
    ) -> "HunterScheduler":
        """Build a scheduler from the Hunter configuration.

        Args:
            config: HunterConfig (uses global if not provided)
            registry: Strategy registry (uses the default registry if not provided)
            store: Lease store (uses the configured database if not provided)

        Returns:
            Configured HunterScheduler
        """
        from hunter_scheduler.config import get_config
        from hunter_scheduler.database.connection import get_session_maker
        from hunter_scheduler.strategies.registry import get_registry

        if config is None:
            config = get_config()
        if registry is None:
            registry = get_registry()
        if store is None:
            store = SqlLeaseStore(get_session_maker(config))

        sched = config.scheduler
        return cls(
            store,
            registry,
            config.worker_id,
            batch_cap=sched.batch_cap,
            lease_timeout=sched.lease_timeout,
            scan_timeout=sched.scan_timeout,
            throttle_interval=sched.throttle_interval,
            max_backoff_multiplier=sched.max_backoff_multiplier,
            parallel_platforms=sched.parallel_platforms,
        )

    async def run_scan_cycle(self) -> CycleSummary:
        """Select due units and execute them.

        Per-unit failures are recorded and the cycle continues; a
        StorageError aborts the cycle and propagates.

        Returns:
            Summary of the cycle
        """
        summary = CycleSummary(started_at=self._clock())
        batch = self.selector.select_due(self.batch_cap)
        summary.selected = len(batch)

        if batch:
            logger.info(f"Scan cycle started: {len(batch)} due unit(s)")
            self.rate_limiter.reset()
            if self.parallel_platforms:
                await self._run_by_platform(batch, summary)
            else:
                await self._run_serial(batch, summary)

        summary.completed_at = self._clock()
        logger.info(
            f"Scan cycle completed: {summary.scanned} scanned, "
            f"{summary.succeeded} succeeded, {summary.failed} failed, "
            f"{summary.skipped} skipped",
            extra={
                "selected": summary.selected,
                "scanned": summary.scanned,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary

    async def _run_serial(
        self,
        units: List[ScheduledUnit],
        summary: CycleSummary,
        key: Optional[str] = None,
    ) -> None:
        for unit in units:
            await self.rate_limiter.throttle(key)
            summary.record(await self.executor.execute(unit, ScanTrigger.SCHEDULED))

    async def _run_by_platform(
        self,
        batch: List[ScheduledUnit],
        summary: CycleSummary,
    ) -> None:
        """One task per platform, each serial in due order."""
        by_platform: Dict[str, List[ScheduledUnit]] = {}
        for unit in batch:
            by_platform.setdefault(unit.platform_type, []).append(unit)

        tasks = [
            asyncio.create_task(self._run_serial(units, summary, key=platform))
            for platform, units in by_platform.items()
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def run_recovery_sweep(self) -> SweepSummary:
        """Release every expired lease.

        Returns:
            Summary of the sweep
        """
        summary = SweepSummary(started_at=self._clock())
        summary.recovered = self.sweeper.recover_stale_leases()
        summary.completed_at = self._clock()
        return summary

    async def scan_now(
        self,
        unit_id: str,
        trigger: ScanTrigger = ScanTrigger.MANUAL,
    ) -> Optional[ScanOutcome]:
        """Run one unit immediately, regardless of its due time.

        Args:
            unit_id: Integration ID
            trigger: MANUAL to reschedule afterwards, TEST for a dry run

        Returns:
            The outcome, or None if another worker holds the lease

        Raises:
            NotFoundError: If the unit does not exist
            ValidationError: If the unit is not active
        """
        if trigger == ScanTrigger.SCHEDULED:
            raise ValueError("scan_now does not accept the scheduled trigger")

        unit = self.store.get_unit(unit_id)
        if unit is None:
            raise NotFoundError(f"Integration not found: {unit_id}")
        if unit.status != UnitStatus.ACTIVE:
            raise ValidationError(
                f"Integration {unit_id} is {unit.status.value}; resume it first"
            )

        await self.rate_limiter.throttle(unit.platform_type)
        return await self.executor.execute(unit, trigger)
