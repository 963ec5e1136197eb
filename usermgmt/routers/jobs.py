"""Polling of background jobs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from usermgmt.auth import require_api_key
from usermgmt.models.jobs import JobStatus
from usermgmt.services.background import job_registry

router = APIRouter(
    prefix="/jobs",
    tags=["jobs"],
    dependencies=[Depends(require_api_key)],
)


@router.get("", response_model=list[JobStatus])
async def list_jobs() -> list[JobStatus]:
    return job_registry.list_jobs()


@router.get("/{job_id}", response_model=JobStatus)
async def get_job(job_id: str) -> JobStatus:
    """Status of one job; failed jobs carry the full error chain."""
    job = job_registry.poll(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.delete("/{job_id}", status_code=204)
async def delete_job(job_id: str) -> None:
    """Forget a finished job."""
    if job_registry.poll(job_id) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not job_registry.remove(job_id):
        raise HTTPException(status_code=409, detail="Job is still running")
