"""Background job models for the SUBMIT -> POLL workflow."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class JobState(str, Enum):
    running = "running"
    succeeded = "succeeded"
    failed = "failed"


class JobStatus(BaseModel):
    """Status of one submitted workflow."""

    job_id: str = Field(default_factory=lambda: str(uuid4()))
    action: str
    username: str = ""
    state: JobState = JobState.running
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
