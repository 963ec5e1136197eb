"""Run blocking workflows off the caller's thread and poll for their outcome.

``BackgroundTask`` wraps a single-worker thread pool: at most one call runs
at a time, and its result (or the exception it raised) is handed out exactly
once. ``JobRegistry`` keeps one task per submitted job for the HTTP API.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from usermgmt.exceptions import format_error_chain
from usermgmt.models.jobs import JobState, JobStatus
from usermgmt.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

TaskOutcome = Union[T, BaseException]

# Returned by try_take_result while there is nothing to take
PENDING: Any = object()


class BackgroundTask(Generic[T]):
    """Spawn, poll without blocking, take the result once."""

    def __init__(self, name: str = "task") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._future: Optional[Future] = None

    def spawn(self, fn: Callable[[], T], name: str | None = None) -> bool:
        """Start ``fn`` on the worker thread.

        Returns False, and starts nothing, while an earlier call is still
        running or its result has not been taken yet.
        """
        if self._future is not None:
            log.warning("task.already_running", task=self.name)
            return False
        if name:
            self.name = name
        self._future = self._executor.submit(fn)
        log.debug("task.spawned", task=self.name)
        return True

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    def try_take_result(self) -> TaskOutcome:
        """``PENDING`` while running or when nothing was spawned.

        Afterwards returns the return value or the raised exception, once.
        """
        future = self._future
        if future is None or not future.done():
            return PENDING
        self._future = None
        exc = future.exception()
        if exc is not None:
            return exc
        return future.result()

    def discard(self) -> None:
        """Wait for a leftover call and log how it ended."""
        future = self._future
        self._future = None
        self._executor.shutdown(wait=True)
        if future is None:
            return
        exc = future.exception()
        if exc is not None:
            log.error("task.discarded_failed", task=self.name, error=format_error_chain(exc))
        else:
            log.info("task.discarded_done", task=self.name)


class Job:
    """A submitted workflow and the task running it."""

    def __init__(self, status: JobStatus, task: BackgroundTask[Any]) -> None:
        self.status = status
        self.task = task


class JobRegistry:
    """In-memory job store keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def submit(
        self,
        action: str,
        fn: Callable[[], Any],
        *,
        username: str = "",
    ) -> JobStatus:
        status = JobStatus(action=action, username=username)
        task: BackgroundTask[Any] = BackgroundTask(name=f"job-{action}")
        task.spawn(fn)
        with self._lock:
            self._jobs[status.job_id] = Job(status, task)
        log.info("job.submitted", job_id=status.job_id, action=action, username=username)
        return status

    def poll(self, job_id: str) -> JobStatus | None:
        """Current status; the first poll after completion records the outcome."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if job.status.state is JobState.running and not job.task.is_running:
                self._finish(job, job.task.try_take_result())
            return job.status

    def remove(self, job_id: str) -> bool:
        """Forget a finished job. Unknown and running jobs are left alone."""
        status = self.poll(job_id)
        if status is None or status.state is JobState.running:
            return False
        with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
        if removed:
            log.info("job.removed", job_id=job_id)
        return removed

    def list_jobs(self) -> list[JobStatus]:
        with self._lock:
            job_ids = list(self._jobs)
        return [status for status in map(self.poll, job_ids) if status is not None]

    def shutdown(self) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        for job in jobs:
            job.task.discard()

    @staticmethod
    def _finish(job: Job, outcome: TaskOutcome) -> None:
        job.status.finished_at = datetime.now(timezone.utc)
        if isinstance(outcome, BaseException):
            job.status.state = JobState.failed
            job.status.error = format_error_chain(outcome)
            log.error(
                "job.failed",
                job_id=job.status.job_id,
                action=job.status.action,
                error=job.status.error,
            )
        else:
            job.status.state = JobState.succeeded
            log.info("job.succeeded", job_id=job.status.job_id, action=job.status.action)
        job.task.discard()


# Singleton used by the API
job_registry = JobRegistry()
