"""Tests for the Hunter daemon."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from hunter_scheduler.config import HunterConfig
from hunter_scheduler.daemon.service import (
    PRUNE_JOB_ID,
    SCAN_JOB_ID,
    SWEEP_JOB_ID,
    HunterDaemon,
    run_daemon,
)
from hunter_scheduler.database.connection import create_tables, get_db_session
from hunter_scheduler.database.models import ScanLog, utcnow
from hunter_scheduler.scheduler.cycles import CycleSummary, SweepSummary


@pytest.fixture
def config(tmp_path) -> HunterConfig:
    config = HunterConfig(
        config_dir=tmp_path,
        data_dir=tmp_path,
        database_url="sqlite://",
        worker_id="daemon-worker",
    )
    config.scheduler.scan_interval = 600
    config.scheduler.sweep_interval = 120
    return config


@pytest.fixture
def mock_scheduler():
    scheduler = MagicMock()
    scheduler.run_scan_cycle = AsyncMock(return_value=CycleSummary(started_at=utcnow()))
    scheduler.run_recovery_sweep = AsyncMock(
        return_value=SweepSummary(started_at=utcnow(), recovered=2)
    )
    return scheduler


class TestHunterDaemon:
    """Tests for HunterDaemon."""

    def test_initial_state(self, config, mock_scheduler) -> None:
        daemon = HunterDaemon(config, scheduler=mock_scheduler)
        assert daemon.is_running is False
        assert daemon.jobs == []
        assert daemon.scheduler is mock_scheduler
        assert daemon.last_cycle is None

    @pytest.mark.asyncio
    async def test_start_registers_jobs(self, config, mock_scheduler) -> None:
        """Test start adds the sweep, scan and retention jobs."""
        daemon = HunterDaemon(config, scheduler=mock_scheduler)

        await daemon.start()
        try:
            assert daemon.is_running is True
            jobs = {job.id: job for job in daemon.jobs}
            assert set(jobs) == {SCAN_JOB_ID, SWEEP_JOB_ID, PRUNE_JOB_ID}
            assert jobs[SCAN_JOB_ID].trigger.interval == timedelta(seconds=600)
            assert jobs[SWEEP_JOB_ID].trigger.interval == timedelta(seconds=120)
            assert jobs[PRUNE_JOB_ID].trigger.interval == timedelta(hours=24)
            assert jobs[SWEEP_JOB_ID].next_run_time < jobs[SCAN_JOB_ID].next_run_time
            assert jobs[SCAN_JOB_ID].max_instances == 1
            assert jobs[SCAN_JOB_ID].coalesce is True
        finally:
            await daemon.stop()

        assert daemon.is_running is False
        assert daemon.jobs == []

    @pytest.mark.asyncio
    async def test_first_ticks_run_both_cycles(self, config, mock_scheduler) -> None:
        """Test the sweep and the scan cycle run shortly after start."""
        daemon = HunterDaemon(config, scheduler=mock_scheduler)

        await daemon.start()
        try:
            for _ in range(30):
                if mock_scheduler.run_scan_cycle.await_count:
                    break
                await asyncio.sleep(0.1)
        finally:
            await daemon.stop()

        mock_scheduler.run_recovery_sweep.assert_awaited()
        mock_scheduler.run_scan_cycle.assert_awaited()

    @pytest.mark.asyncio
    async def test_scan_job_records_summary(self, config, mock_scheduler) -> None:
        daemon = HunterDaemon(config, scheduler=mock_scheduler)

        summary = await daemon.scan_job()

        assert summary is mock_scheduler.run_scan_cycle.return_value
        assert daemon.last_cycle is summary

    @pytest.mark.asyncio
    async def test_sweep_job_records_summary(self, config, mock_scheduler) -> None:
        daemon = HunterDaemon(config, scheduler=mock_scheduler)

        summary = await daemon.sweep_job()

        assert summary.recovered == 2
        assert daemon.last_sweep is summary

    @pytest.mark.asyncio
    async def test_prune_job(self, config, mock_scheduler) -> None:
        """Test logs older than the retention window are deleted."""
        config.scheduler.history_retention_days = 30
        create_tables(config)
        now = utcnow()
        with get_db_session(config) as session:
            for age in (40, 31, 1):
                started = now - timedelta(days=age)
                session.add(ScanLog(
                    integration_id="abc",
                    project_id="acme",
                    platform_type="reddit",
                    trigger="scheduled",
                    success=True,
                    started_at=started,
                    ended_at=started,
                    duration_ms=0,
                ))

        daemon = HunterDaemon(config, scheduler=mock_scheduler)
        assert await daemon.prune_job() == 2

        with get_db_session(config) as session:
            assert session.query(ScanLog).count() == 1

    @pytest.mark.asyncio
    async def test_prune_disabled(self, config, mock_scheduler) -> None:
        config.scheduler.history_retention_days = 0
        daemon = HunterDaemon(config, scheduler=mock_scheduler)
        assert await daemon.prune_job() == 0

    @pytest.mark.asyncio
    async def test_request_shutdown(self, config, mock_scheduler) -> None:
        daemon = HunterDaemon(config, scheduler=mock_scheduler)

        daemon.request_shutdown()

        await asyncio.wait_for(daemon.run_until_shutdown(), timeout=1.0)


class TestRunDaemon:
    """Tests for run_daemon."""

    @pytest.mark.asyncio
    async def test_stops_after_shutdown(self, config, mock_scheduler, monkeypatch) -> None:
        """Test run_daemon starts, waits for shutdown and stops."""
        started = []
        stopped = []

        async def fake_start(self):
            started.append(True)
            self.request_shutdown()

        async def fake_stop(self):
            stopped.append(True)

        monkeypatch.setattr(HunterDaemon, "start", fake_start)
        monkeypatch.setattr(HunterDaemon, "stop", fake_stop)

        await asyncio.wait_for(run_daemon(config, scheduler=mock_scheduler), timeout=2.0)

        assert started == [True]
        assert stopped == [True]
