"""In-memory job store with a recurring retention sweep.

The store is the single source of truth for job state. Adapters write to it
by id; everybody else reads copies. All methods are synchronous so that a
read-modify-write never spans an await on the event loop.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from imagegen.errors import DuplicateJobError
from imagegen.jobs.models import Job, utcnow

logger = logging.getLogger(__name__)


class JobStore:
    """Keyed map of job_id -> Job with TTL-based cleanup."""

    def __init__(
        self,
        retention: timedelta = timedelta(hours=24),
        cleanup_interval: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
        on_sweep: Optional[Callable[[], int]] = None,
    ):
        self._jobs: Dict[str, Job] = {}
        self._retention = retention
        self._cleanup_interval = cleanup_interval
        self._clock = clock
        # Extra housekeeping run after each sweep (e.g. rendered file cleanup)
        self._on_sweep = on_sweep
        self._task: Optional[asyncio.Task] = None
        self._running = False

    def __len__(self) -> int:
        return len(self._jobs)

    def create(self, job: Job) -> Job:
        if job.job_id in self._jobs:
            raise DuplicateJobError(job.job_id)
        self._jobs[job.job_id] = job.model_copy(deep=True)
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    def update(self, job_id: str, **fields) -> Optional[Job]:
        """Merge ``fields`` into the stored job and stamp ``updated_at``.

        The merge is applied against the stored value, never a caller's copy,
        so two writers issuing updates in turn both land. Returns None if the
        id is unknown.
        """
        unknown = set(fields) - set(Job.model_fields)
        if unknown:
            raise TypeError(f"Unknown job fields: {sorted(unknown)}")

        job = self._jobs.get(job_id)
        if job is None:
            return None

        fields["updated_at"] = self._clock()
        # Validated, so plain strings become JobStatus and lists are copied
        updated = Job.model_validate({**job.model_dump(), **fields})
        self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def list(self) -> List[Job]:
        """All jobs, newest first."""
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
        return [j.model_copy(deep=True) for j in jobs]

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Remove jobs created before the retention window. Returns count removed."""
        cutoff = (now or self._clock()) - self._retention
        expired = [job_id for job_id, job in self._jobs.items() if job.created_at < cutoff]
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)

    async def start(self) -> None:
        """Start the recurring cleanup sweep."""
        if self._task is not None and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self) -> None:
        interval = self._cleanup_interval.total_seconds()
        while self._running:
            await asyncio.sleep(interval)
            removed = self.cleanup()
            if removed:
                logger.info("Job cleanup removed %d expired job(s)", removed)
            if self._on_sweep is not None:
                try:
                    self._on_sweep()
                except Exception:
                    logger.exception("Sweep hook failed")
