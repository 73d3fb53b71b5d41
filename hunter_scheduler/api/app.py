"""HTTP trigger endpoints.

Hosted cron services call these routes to drive the scheduler. When a
cron secret is configured, every trigger must carry it as a bearer
token.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hunter_scheduler import __version__
from hunter_scheduler.config import HunterConfig, get_config
from hunter_scheduler.errors import StorageError
from hunter_scheduler.scheduler.cycles import HunterScheduler

logger = logging.getLogger(__name__)


class CycleSummaryResponse(BaseModel):
    """Scan cycle response."""
    started_at: str
    completed_at: Optional[str] = None
    selected: int
    scanned: int
    skipped: int
    succeeded: int
    failed: int
    items_found: int
    items_stored: int
    results: List[Dict[str, Any]]


class SweepSummaryResponse(BaseModel):
    """Recovery sweep response."""
    started_at: str
    completed_at: Optional[str] = None
    recovered: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    worker_id: str
    strategies: List[str]


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def verify_cron_secret(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    """Reject the request unless it carries the configured cron secret."""
    expected = request.app.state.config.server.cron_secret
    if not expected:
        return

    # Use constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(expected.encode(), _bearer_token(authorization).encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_scheduler(request: Request) -> HunterScheduler:
    """Get the application's scheduler, building it on first use."""
    state = request.app.state
    if state.scheduler is None:
        state.scheduler = HunterScheduler.from_config(state.config)
    return state.scheduler


router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/scan", methods=["GET", "POST"], response_model=CycleSummaryResponse)
async def trigger_scan_cycle(scheduler: HunterScheduler = Depends(get_scheduler)):
    """Run one scan cycle and return its summary."""
    summary = await scheduler.run_scan_cycle()
    return summary.to_dict()


@router.api_route("/recover", methods=["GET", "POST"], response_model=SweepSummaryResponse)
async def trigger_recovery_sweep(scheduler: HunterScheduler = Depends(get_scheduler)):
    """Release expired leases and return the count."""
    summary = await scheduler.run_recovery_sweep()
    return summary.to_dict()


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Storage failure during {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "storage_unavailable", "detail": exc.message},
    )


def create_app(
    config: Optional[HunterConfig] = None,
    scheduler: Optional[HunterScheduler] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Hunter configuration (uses global if not provided)
        scheduler: Scheduler to drive (built from config on first request if not provided)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="Hunter Scheduler", version=__version__)
    app.state.config = config or get_config()
    app.state.scheduler = scheduler

    app.include_router(router)
    app.add_exception_handler(StorageError, storage_error_handler)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """Liveness probe. Never touches the database."""
        sched = request.app.state.scheduler
        return {
            "status": "ok",
            "version": __version__,
            "worker_id": request.app.state.config.worker_id,
            "strategies": sched.registry.platforms if sched else [],
        }

    return app
