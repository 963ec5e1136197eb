"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from usermgmt import __version__
from usermgmt.routers import health, jobs, users
from usermgmt.services.background import job_registry
from usermgmt.utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    # No LDAP backend unless one is installed on app.state
    if not hasattr(app.state, "directory_service"):
        app.state.directory_service = None
    yield
    # Wait for jobs still running
    job_registry.shutdown()


app = FastAPI(
    title="usermgmt",
    description="User management for LDAP, Slurm and user directories",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(users.router)
app.include_router(jobs.router)
