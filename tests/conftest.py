"""Shared fixtures for the Hunter scheduler tests."""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from hunter_scheduler.config import clear_config_cache
from hunter_scheduler.database.connection import build_engine, dispose_engine
from hunter_scheduler.database.models import Base, PlatformIntegration, ScanLog
from hunter_scheduler.scheduler.cycles import HunterScheduler
from hunter_scheduler.scheduler.lease_store import SqlLeaseStore
from hunter_scheduler.strategies.base import HunterStrategy, RawScanResult
from hunter_scheduler.strategies.registry import StrategyRegistry, reset_registry

# Fixed "now" for deterministic scheduling tests
T0 = datetime(2025, 1, 6, 12, 0, 0)


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StubStrategy(HunterStrategy):
    """Strategy returning a canned result and recording its calls."""

    platform = "reddit"

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        result: Optional[RawScanResult] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        platform: Optional[str] = None,
        on_scan: Optional[Callable[[Any], None]] = None,
    ) -> None:
        super().__init__(settings)
        if platform:
            self.platform = platform
        self.result = result or RawScanResult(success=True, items_found=10, items_stored=7)
        self.error = error
        self.delay = delay
        self.on_scan = on_scan
        self.calls: List[Any] = []
        self.logged: List[Any] = []

    async def scan(self, config, unit) -> RawScanResult:
        self.calls.append((config, unit))
        if self.on_scan:
            self.on_scan(unit)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result

    async def log_scan(self, result, unit_id, project_id, trigger) -> None:
        self.logged.append((unit_id, project_id, trigger, result.success))


@pytest.fixture(autouse=True)
def reset_globals():
    """Forget global config, registry and engine between tests."""
    yield
    clear_config_cache()
    reset_registry()
    dispose_engine()


@pytest.fixture
def engine():
    """In-memory SQLite engine with the schema created."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> SqlLeaseStore:
    return SqlLeaseStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def add_unit(session_factory, clock):
    """Insert a platform integration and return its ID.

    Defaults to an active reddit unit, 15 minute cadence, due one minute ago.
    """
    counter = {"n": 0}

    def _add(
        project_id: Optional[str] = None,
        platform_type: str = "reddit",
        scan_frequency_minutes: int = 15,
        next_due_at: Optional[datetime] = None,
        status: str = "active",
        **columns: Any,
    ) -> str:
        counter["n"] += 1
        row = PlatformIntegration(
            project_id=project_id or f"project-{counter['n']}",
            platform_type=platform_type,
            config=columns.pop("config", {}),
            scan_frequency_minutes=scan_frequency_minutes,
            next_due_at=next_due_at or clock.now - timedelta(minutes=1),
            status=status,
            **columns,
        )
        with session_factory.begin() as session:
            session.add(row)
            session.flush()
            return row.id

    return _add


@pytest.fixture
def load_unit(session_factory):
    """Read a platform integration row fresh from the database."""

    def _load(unit_id: str) -> PlatformIntegration:
        with session_factory() as session:
            return session.get(PlatformIntegration, unit_id)

    return _load


@pytest.fixture
def load_logs(session_factory):
    """Read every scan log row, oldest first."""

    def _load(integration_id: Optional[str] = None) -> List[ScanLog]:
        with session_factory() as session:
            query = session.query(ScanLog)
            if integration_id:
                query = query.filter(ScanLog.integration_id == integration_id)
            return query.order_by(ScanLog.id).all()

    return _load


@pytest.fixture
def stub() -> StubStrategy:
    return StubStrategy()


@pytest.fixture
def make_strategy():
    """The StubStrategy class, for tests that need several instances."""
    return StubStrategy


@pytest.fixture
def registry(stub) -> StrategyRegistry:
    registry = StrategyRegistry()
    registry.register(stub)
    return registry


@pytest.fixture
def sleeps() -> List[float]:
    """Durations passed to the rate limiter's sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def scheduler(store, registry, clock, fake_sleep) -> HunterScheduler:
    return HunterScheduler(
        store,
        registry,
        "worker-1",
        clock=clock,
        sleep=fake_sleep,
    )
