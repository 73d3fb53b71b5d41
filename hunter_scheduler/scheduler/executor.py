"""Scan executor for a single scheduled unit.

The ScanExecutor takes the lease on a unit, runs the platform strategy
under a deadline, and records the outcome together with the unit's new
schedule. Everything that can go wrong with one unit is turned into a
failed outcome; only storage failures escape.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from hunter_scheduler.database.models import utcnow
from hunter_scheduler.errors import (
    ConfigurationError,
    HunterError,
    ScanTimeoutError,
    StrategyError,
)
from hunter_scheduler.scheduler.lease_store import LeaseStore
from hunter_scheduler.scheduler.units import Clock, ScanOutcome, ScanTrigger, ScheduledUnit
from hunter_scheduler.strategies.base import HunterStrategy, RawScanResult
from hunter_scheduler.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TIMEOUT = 900
DEFAULT_SCAN_TIMEOUT = 300.0
DEFAULT_MAX_BACKOFF_MULTIPLIER = 16

# Floor applied when a stored cadence is not positive
MIN_SCAN_FREQUENCY = timedelta(minutes=1)


def backoff_multiplier(consecutive_failures: int, max_multiplier: int) -> int:
    """Multiplier applied to the scan frequency after failures.

    1 with no failures, then 2, 4, 8... capped at max_multiplier.
    """
    if consecutive_failures <= 0:
        return 1
    # Exponent is clamped so long failure streaks stay cheap to compute
    return min(2 ** min(consecutive_failures, 62), max_multiplier)


def compute_next_due(
    now: datetime,
    scan_frequency: timedelta,
    consecutive_failures: int,
    max_multiplier: int = DEFAULT_MAX_BACKOFF_MULTIPLIER,
) -> datetime:
    """Next due time after an attempt that completed at `now`.

    Args:
        now: Completion time of the attempt
        scan_frequency: The unit's base cadence
        consecutive_failures: Failure count after this attempt (0 on success)
        max_multiplier: Upper bound on the backoff multiplier

    Returns:
        When the unit next becomes due
    """
    return now + scan_frequency * backoff_multiplier(consecutive_failures, max_multiplier)


class ScanExecutor:
    """Executes one unit: lease, scan, persist, reschedule.

    Example:
        executor = ScanExecutor(store, registry, worker_id="worker-1")
        outcome = await executor.execute(unit)
        if outcome is None:
            pass  # another worker holds the unit
    """

    def __init__(
        self,
        store: LeaseStore,
        registry: StrategyRegistry,
        worker_id: str,
        lease_timeout: float = DEFAULT_LEASE_TIMEOUT,
        scan_timeout: float = DEFAULT_SCAN_TIMEOUT,
        max_backoff_multiplier: int = DEFAULT_MAX_BACKOFF_MULTIPLIER,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize the executor.

        Args:
            store: Lease store holding the units
            registry: Strategy registry used to resolve platforms
            worker_id: Lease owner identity for this process
            lease_timeout: Lease duration in seconds
            scan_timeout: Deadline for one strategy scan in seconds
            max_backoff_multiplier: Upper bound on failure backoff
            clock: Source of the current naive UTC time
        """
        self._store = store
        self._registry = registry
        self.worker_id = worker_id
        self.lease_timeout = lease_timeout
        self.scan_timeout = scan_timeout
        self.max_backoff_multiplier = max_backoff_multiplier
        self._clock = clock

    async def execute(
        self,
        unit: ScheduledUnit,
        trigger: ScanTrigger = ScanTrigger.SCHEDULED,
    ) -> Optional[ScanOutcome]:
        """Execute one unit.

        Scheduled triggers only run a unit that is still due; manual and
        test triggers run any active, unleased unit. Test runs record an
        outcome but leave the unit's schedule and counters alone.

        Args:
            unit: The unit to execute (a snapshot; the lease re-reads it)
            trigger: What caused this attempt

        Returns:
            The recorded outcome, or None if the lease race was lost

        Raises:
            StorageError: If the lease or the outcome cannot be persisted
        """
        started_at = self._clock()
        leased = self._store.try_acquire(
            unit.id,
            self.worker_id,
            started_at,
            self.lease_timeout,
            require_due=trigger == ScanTrigger.SCHEDULED,
        )
        if leased is None:
            logger.debug(f"Lease on {unit.id} not acquired; skipping")
            return None

        strategy: Optional[HunterStrategy] = None
        try:
            strategy = self._registry.resolve(leased.platform_type)
            self._check_unit(leased)
            result = await self._run_strategy(strategy, leased)
        except HunterError as e:
            result = RawScanResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Strategy for {leased.platform_type} raised on {leased.id}")
            result = RawScanResult(success=False, error=f"{type(e).__name__}: {e}")

        ended_at = self._clock()
        outcome = ScanOutcome(
            integration_id=leased.id,
            project_id=leased.project_id,
            platform_type=leased.platform_type,
            trigger=trigger,
            success=result.success,
            started_at=started_at,
            ended_at=ended_at,
            items_found=result.items_found if result.success else 0,
            items_stored=result.items_stored if result.success else 0,
            items_duplicates=result.items_duplicates if result.success else 0,
            error_message=None if result.success else result.error,
        )

        if trigger == ScanTrigger.TEST:
            consecutive_failures = leased.consecutive_failures
            next_due_at = None
        else:
            consecutive_failures = 0 if result.success else leased.consecutive_failures + 1
            next_due_at = compute_next_due(
                ended_at,
                max(leased.scan_frequency, MIN_SCAN_FREQUENCY),
                consecutive_failures,
                self.max_backoff_multiplier,
            )

        self._store.complete(
            leased, self.worker_id, outcome, next_due_at, consecutive_failures
        )
        self._log_outcome(outcome, next_due_at, consecutive_failures)

        if strategy is not None:
            try:
                await strategy.log_scan(result, leased.id, leased.project_id, trigger)
            except Exception as e:
                logger.warning(f"log_scan hook failed for {leased.id}: {e}")

        return outcome

    def _check_unit(self, unit: ScheduledUnit) -> None:
        """Reject tenant-owned settings the scheduler cannot run with."""
        if not isinstance(unit.config, dict):
            raise ConfigurationError(
                "Integration config must be a JSON object",
                details={"type": type(unit.config).__name__},
            )
        if unit.scan_frequency <= timedelta(0):
            raise ConfigurationError(
                "Scan frequency must be positive",
                details={"scan_frequency": str(unit.scan_frequency)},
            )

    async def _run_strategy(
        self,
        strategy: HunterStrategy,
        unit: ScheduledUnit,
    ) -> RawScanResult:
        """Run a strategy's scan under the execution deadline."""
        config = {**strategy.settings, **unit.config}
        deadline = asyncio.timeout(self.scan_timeout)
        try:
            async with deadline:
                result = await strategy.scan(config, unit)
        except TimeoutError:
            # A TimeoutError raised by the strategy itself is an ordinary failure
            if not deadline.expired():
                raise
            raise ScanTimeoutError(self.scan_timeout) from None

        if not isinstance(result, RawScanResult):
            raise StrategyError(
                f"Strategy returned {type(result).__name__}, expected RawScanResult"
            )
        if not result.success and not result.error:
            result.error = "Strategy reported failure"
        return result

    def _log_outcome(
        self,
        outcome: ScanOutcome,
        next_due_at: Optional[datetime],
        consecutive_failures: int,
    ) -> None:
        extra = {
            "integration_id": outcome.integration_id,
            "platform": outcome.platform_type,
            "project_id": outcome.project_id,
            "trigger": outcome.trigger.value,
            "success": outcome.success,
            "duration_ms": outcome.duration_ms,
            "items_found": outcome.items_found,
            "items_stored": outcome.items_stored,
            "consecutive_failures": consecutive_failures,
        }
        if outcome.success:
            logger.info(
                f"[{outcome.platform_type}] Scan of {outcome.integration_id} succeeded "
                f"in {outcome.duration_ms}ms: found {outcome.items_found}, "
                f"stored {outcome.items_stored}",
                extra=extra,
            )
        else:
            retry = f", next attempt at {next_due_at.isoformat()}" if next_due_at else ""
            logger.warning(
                f"[{outcome.platform_type}] Scan of {outcome.integration_id} failed "
                f"({consecutive_failures} consecutive): {outcome.error_message}{retry}",
                extra=extra,
            )
