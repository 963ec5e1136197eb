"""Health-check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from usermgmt import __version__
from usermgmt.auth import get_settings
from usermgmt.config import Settings
from usermgmt.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health(cfg: Settings = Depends(get_settings)) -> HealthResponse:
    """Liveness check (no auth required)."""
    return HealthResponse(
        status="ok",
        version=__version__,
        head_node=cfg.head_node,
        run_slurm_remote=cfg.run_slurm_remote,
    )
