"""Daemon service for the Hunter scheduler.

This module provides the long-running timer process:
- Interval jobs for the scan cycle and the recovery sweep
- A daily scan log retention job
- Signal handling for graceful shutdown
"""

import asyncio
import logging
import signal
from datetime import timedelta
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hunter_scheduler.config import HunterConfig
from hunter_scheduler.database.connection import get_db_session
from hunter_scheduler.database.models import utcnow
from hunter_scheduler.database.repositories import ScanLogRepository
from hunter_scheduler.scheduler.cycles import CycleSummary, HunterScheduler, SweepSummary

logger = logging.getLogger(__name__)

SCAN_JOB_ID = "hunter-scan-cycle"
SWEEP_JOB_ID = "hunter-recovery-sweep"
PRUNE_JOB_ID = "hunter-history-prune"


class HunterDaemon:
    """Timer process driving the scan cycle and the recovery sweep.

    The cycles themselves are stateless; this class only decides when
    they run. max_instances=1 keeps a slow cycle from overlapping with
    the next tick of the same job, and coalesce=True collapses ticks
    missed while the process was busy.

    Example:
        daemon = HunterDaemon(config)
        await daemon.start()
        await daemon.run_until_shutdown()
        await daemon.stop()
    """

    def __init__(
        self,
        config: HunterConfig,
        scheduler: Optional[HunterScheduler] = None,
    ):
        """Initialize the daemon service.

        Args:
            config: Hunter configuration
            scheduler: Scheduler to drive (built from config if not provided)
        """
        self._config = config
        self._scheduler = scheduler
        self._aps: Optional[AsyncIOScheduler] = None
        self._running = False
        self._shutdown_event = asyncio.Event()
        self.last_cycle: Optional[CycleSummary] = None
        self.last_sweep: Optional[SweepSummary] = None

    async def start(self) -> None:
        """Register the interval jobs and start the timer."""
        logger.info("Starting Hunter daemon...")

        if self._scheduler is None:
            self._scheduler = HunterScheduler.from_config(self._config)

        sched = self._config.scheduler
        self._aps = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,  # Never overlap a cycle with itself
                "misfire_grace_time": 60,
            },
            timezone="UTC",
        )
        self._setup_listeners()

        # Sweep first so leases left by a crashed predecessor are freed
        # before the first scan cycle selects
        first_run = utcnow()
        self._aps.add_job(
            self.sweep_job,
            trigger=IntervalTrigger(seconds=sched.sweep_interval, timezone="UTC"),
            id=SWEEP_JOB_ID,
            name="Recovery sweep",
            next_run_time=first_run,
            replace_existing=True,
        )
        self._aps.add_job(
            self.scan_job,
            trigger=IntervalTrigger(seconds=sched.scan_interval, timezone="UTC"),
            id=SCAN_JOB_ID,
            name="Scan cycle",
            next_run_time=first_run + timedelta(seconds=1),
            replace_existing=True,
        )
        self._aps.add_job(
            self.prune_job,
            trigger=IntervalTrigger(hours=24, timezone="UTC"),
            id=PRUNE_JOB_ID,
            name="Scan history retention",
            replace_existing=True,
        )

        self._aps.start()
        self._running = True
        logger.info(
            f"Hunter daemon started (worker {self._config.worker_id}, "
            f"scan every {sched.scan_interval}s, sweep every {sched.sweep_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the timer. A cycle in progress is not interrupted."""
        logger.info("Stopping Hunter daemon...")
        self._running = False

        if self._aps:
            try:
                self._aps.shutdown(wait=False)
            except Exception as e:
                logger.warning(f"Error stopping scheduler: {e}")
            self._aps = None

        logger.info("Hunter daemon stopped")

    async def run_until_shutdown(self) -> None:
        """Block until request_shutdown() is called."""
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Request daemon shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def scheduler(self) -> Optional[HunterScheduler]:
        return self._scheduler

    @property
    def jobs(self) -> list:
        """APScheduler jobs currently registered."""
        return self._aps.get_jobs() if self._aps else []

    async def scan_job(self) -> CycleSummary:
        """Interval job: one scan cycle."""
        self.last_cycle = await self._scheduler.run_scan_cycle()
        return self.last_cycle

    async def sweep_job(self) -> SweepSummary:
        """Interval job: one recovery sweep."""
        self.last_sweep = await self._scheduler.run_recovery_sweep()
        return self.last_sweep

    async def prune_job(self) -> int:
        """Daily job: delete scan logs past the retention window."""
        retention = self._config.scheduler.history_retention_days
        if retention <= 0:
            return 0

        cutoff = utcnow() - timedelta(days=retention)
        with get_db_session(self._config) as session:
            deleted = ScanLogRepository(session).delete_old(cutoff)
        if deleted:
            logger.info(f"Pruned {deleted} scan log(s) older than {retention} days")
        return deleted

    def _setup_listeners(self) -> None:
        def on_job_error(event: Any) -> None:
            exception = getattr(event, "exception", "Unknown error")
            logger.error(f"Job {event.job_id} failed: {exception}")

        def on_job_missed(event: Any) -> None:
            logger.warning(f"Job {event.job_id} missed scheduled run")

        self._aps.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._aps.add_listener(on_job_missed, EVENT_JOB_MISSED)


async def run_daemon(
    config: HunterConfig,
    scheduler: Optional[HunterScheduler] = None,
) -> None:
    """Run the Hunter daemon until SIGINT or SIGTERM.

    Args:
        config: Hunter configuration
        scheduler: Scheduler to drive (built from config if not provided)
    """
    daemon = HunterDaemon(config, scheduler=scheduler)
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        daemon.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda signum, frame: handle_signal(signal.Signals(signum)))

    try:
        await daemon.start()
        await daemon.run_until_shutdown()
    finally:
        await daemon.stop()
